"""Checklist completion scoring and risk classification."""

from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping

COMPLETE_STATUSES = frozenset({"complete", "completed"})

LOW_RISK_THRESHOLD = 80
MEDIUM_RISK_THRESHOLD = 60


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_STATUS_BY_RISK = {
    RiskLevel.LOW: "ready",
    RiskLevel.MEDIUM: "in_progress",
    RiskLevel.HIGH: "at_risk",
}


@dataclass(frozen=True)
class ChecklistProgress:
    total: int
    complete: int
    in_progress: int
    not_started: int
    percent_complete: int

    def to_dict(self) -> Dict[str, int]:
        data = asdict(self)
        return {
            "total": data["total"],
            "complete": data["complete"],
            "inProgress": data["in_progress"],
            "notStarted": data["not_started"],
            "percentComplete": data["percent_complete"],
        }


def _as_items(checklist: Any) -> List[Any]:
    return list(checklist) if isinstance(checklist, (list, tuple)) else []


def _status_of(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("status") or "").strip().lower()
    return ""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return _round_half_up(100 * part / total)


def compute_score(checklist: Any) -> int:
    """Return the 0-100 completion score for ``checklist``.

    Non-list input and empty lists score ``0``.  Items count as complete when
    their status is ``complete`` or the legacy ``completed`` in any casing.
    """

    items = _as_items(checklist)
    if not items:
        return 0
    complete = sum(1 for item in items if _status_of(item) in COMPLETE_STATUSES)
    return percent(complete, len(items))


def compute_progress(checklist: Any) -> ChecklistProgress:
    items = _as_items(checklist)
    statuses = [_status_of(item) for item in items]
    complete = sum(1 for status in statuses if status in COMPLETE_STATUSES)
    return ChecklistProgress(
        total=len(items),
        complete=complete,
        in_progress=statuses.count("in_progress"),
        not_started=statuses.count("not_started"),
        percent_complete=percent(complete, len(items)),
    )


def determine_risk_level(score: int) -> RiskLevel:
    if score >= LOW_RISK_THRESHOLD:
        return RiskLevel.LOW
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def classify_status(risk: RiskLevel) -> str:
    return _STATUS_BY_RISK[RiskLevel(risk)]


def issues_count(risk: RiskLevel) -> int:
    # A high-risk flag, not a tally of distinct compliance issues.
    return 1 if RiskLevel(risk) is RiskLevel.HIGH else 0


__all__ = [
    "COMPLETE_STATUSES",
    "ChecklistProgress",
    "RiskLevel",
    "classify_status",
    "compute_progress",
    "compute_score",
    "determine_risk_level",
    "issues_count",
    "percent",
]
