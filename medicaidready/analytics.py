"""Portfolio analytics across all providers.

For every provider the aggregator computes the completion score, classifies
risk, compares the score with the provider's ledger and records the current
month's score.  Reading the provider list is all-or-nothing; ledger problems
for an individual provider only flatten that provider's trend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from prometheus_client import Counter
from sqlalchemy.orm import Session

from medicaidready import history
from medicaidready.db.models import Provider
from medicaidready.errors import DatabaseReadError
from medicaidready.providers import ProviderRepository
from medicaidready.scoring import (
    RiskLevel,
    classify_status,
    compute_score,
    determine_risk_level,
    issues_count,
)
from medicaidready.time_utils import isoformat_utc, month_key as month_key_for, utc_now
from medicaidready.trends import assess

logger = structlog.get_logger(__name__)

UNASSIGNED_STATE = "UNASSIGNED"

ANALYTICS_RUNS = Counter(
    "medicaidready_analytics_runs_total",
    "Portfolio analytics computations",
    ("outcome",),
)


@dataclass(frozen=True)
class AnalyticsRow:
    id: str
    name: str
    status: str
    state: str
    updated_at: Optional[str]
    score: int
    risk_level: RiskLevel
    trend: str
    declining: bool
    escalation_risk: bool
    issues_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "state": self.state,
            "updatedAt": self.updated_at,
            "score": self.score,
            "riskLevel": self.risk_level.value,
            "trend": self.trend,
            "declining": self.declining,
            "escalationRisk": self.escalation_risk,
            "issuesCount": self.issues_count,
        }


@dataclass
class PortfolioSummary:
    month_key: str
    generated_at: str
    rows: List[AnalyticsRow] = field(default_factory=list)

    def risk_summary(self) -> Dict[str, int]:
        summary = {level.value: 0 for level in (RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW)}
        for row in self.rows:
            summary[row.risk_level.value] += 1
        return summary

    def state_summary(self) -> Dict[str, Dict[str, int]]:
        summary: Dict[str, Dict[str, int]] = {}
        for row in self.rows:
            bucket = summary.setdefault(row.state, {"total": 0, "high": 0, "medium": 0, "low": 0})
            bucket["total"] += 1
            bucket[row.risk_level.value] += 1
        return summary

    def trend_summary(self) -> Dict[str, int]:
        return {
            "declining": sum(1 for row in self.rows if row.declining),
            "escalationRisk": sum(1 for row in self.rows if row.escalation_risk),
        }

    def totals(self) -> Dict[str, int]:
        return {
            "providers": len(self.rows),
            "withScore": sum(1 for row in self.rows if row.score > 0),
            "withUpdates": sum(1 for row in self.rows if row.updated_at),
            "withIssues": sum(1 for row in self.rows if row.issues_count > 0),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "monthKey": self.month_key,
            "totals": self.totals(),
            "riskSummary": self.risk_summary(),
            "stateSummary": self.state_summary(),
            "trendSummary": self.trend_summary(),
            "rows": [row.to_dict() for row in self.rows],
        }


def _display_name(provider: Provider, meta: Dict[str, Any]) -> str:
    onboard = provider.onboard_dict()
    org = onboard.get("org") if isinstance(onboard.get("org"), dict) else {}
    for candidate in (org.get("name"), meta.get("name")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return provider.id


def analyse_provider(session: Session, provider: Provider, current_month: str) -> AnalyticsRow:
    meta = provider.meta_dict()
    checklist = provider.checklist if isinstance(provider.checklist, list) else []
    score = compute_score(checklist)
    risk = determine_risk_level(score)

    window = history.fetch_window(session, provider.id, current_month)
    assessment = assess(score, window)
    history.record_score(session, provider.id, current_month, score)

    data = provider.to_dict()
    return AnalyticsRow(
        id=provider.id,
        name=_display_name(provider, meta),
        status=classify_status(risk),
        state=meta.get("jurisdiction_code") or UNASSIGNED_STATE,
        updated_at=data["updatedAt"],
        score=score,
        risk_level=risk,
        trend=assessment.trend.value,
        declining=assessment.declining,
        escalation_risk=assessment.escalation_risk,
        issues_count=issues_count(risk),
    )


def build_portfolio(session: Session, now: Optional[datetime] = None) -> PortfolioSummary:
    """Compute the portfolio summary and record this month's scores.

    Raises :class:`~medicaidready.errors.DatabaseReadError` when the provider
    list cannot be read.
    """

    moment = now or utc_now()
    current_month = month_key_for(moment)
    try:
        providers = ProviderRepository(session).list_all()
    except DatabaseReadError:
        ANALYTICS_RUNS.labels("failed").inc()
        raise

    summary = PortfolioSummary(month_key=current_month, generated_at=isoformat_utc(moment))
    for provider in providers:
        summary.rows.append(analyse_provider(session, provider, current_month))

    ANALYTICS_RUNS.labels("ok").inc()
    logger.info(
        "analytics_built",
        month_key=current_month,
        providers=len(summary.rows),
        declining=summary.trend_summary()["declining"],
    )
    return summary


__all__ = [
    "UNASSIGNED_STATE",
    "AnalyticsRow",
    "PortfolioSummary",
    "analyse_provider",
    "build_portfolio",
]
