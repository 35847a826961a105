"""Per-provider monthly score ledger.

Lookups return either a :class:`HistoryWindow` or a :class:`HistoryUnavailable`
value; database errors are converted into the latter so that analytics keep
rendering when the ledger cannot be reached.  Every statement runs inside a
SAVEPOINT so a failure does not abort the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

import structlog
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicaidready.db.models import ComplianceHistory
from medicaidready.time_utils import month_key, utc_now

logger = structlog.get_logger(__name__)

WINDOW_SIZE = 2

HISTORY_FALLBACKS = Counter(
    "medicaidready_history_fallbacks_total",
    "History ledger operations that failed and fell back to no history",
    ("operation",),
)


@dataclass(frozen=True)
class HistoryWindow:
    """The two most recent prior months for a provider."""

    last: Optional[int] = None
    prev_to_last: Optional[int] = None


@dataclass(frozen=True)
class HistoryUnavailable:
    reason: str


HistoryResult = Union[HistoryWindow, HistoryUnavailable]


def _upsert_statement(session: Session, rows: List[dict]):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        stmt = sqlite_insert(ComplianceHistory).values(rows)
    elif dialect == "postgresql":
        stmt = pg_insert(ComplianceHistory).values(rows)
    else:
        return None
    return stmt.on_conflict_do_update(
        index_elements=[ComplianceHistory.provider_id, ComplianceHistory.month_key],
        set_={"score": stmt.excluded.score, "recorded_at": stmt.excluded.recorded_at},
    )


def _merge_rows(session: Session, rows: List[dict]) -> None:
    for row in rows:
        existing = session.execute(
            select(ComplianceHistory).where(
                ComplianceHistory.provider_id == row["provider_id"],
                ComplianceHistory.month_key == row["month_key"],
            )
        ).scalar_one_or_none()
        if existing is None:
            session.add(ComplianceHistory(**row))
        else:
            existing.score = row["score"]
            existing.recorded_at = row["recorded_at"]
    session.flush()


def _write(session: Session, rows: List[dict]) -> None:
    stmt = _upsert_statement(session, rows)
    if stmt is None:
        _merge_rows(session, rows)
    else:
        session.execute(stmt)


def fetch_window(session: Session, provider_id: str, current_month: str) -> HistoryResult:
    """Return the prior-month window for ``provider_id``.

    Only months strictly before ``current_month`` are considered, so an
    overwrite of this month's entry or a row dated later never shifts the
    comparison window.
    """

    try:
        with session.begin_nested():
            rows = session.execute(
                select(ComplianceHistory.score)
                .where(
                    ComplianceHistory.provider_id == provider_id,
                    ComplianceHistory.month_key < current_month,
                )
                .order_by(ComplianceHistory.month_key.desc())
                .limit(WINDOW_SIZE)
            ).all()
    except SQLAlchemyError as exc:
        HISTORY_FALLBACKS.labels("lookup").inc()
        logger.warning("history_unavailable", provider_id=provider_id, error=str(exc))
        return HistoryUnavailable(reason=type(exc).__name__)

    prior = [int(score) for (score,) in rows]
    return HistoryWindow(
        last=prior[0] if len(prior) > 0 else None,
        prev_to_last=prior[1] if len(prior) > 1 else None,
    )


def record_score(session: Session, provider_id: str, month_key: str, score: int) -> bool:
    """Upsert ``score`` for ``(provider_id, month_key)``; ``False`` on failure."""

    row = {
        "provider_id": provider_id,
        "month_key": month_key,
        "score": int(score),
        "recorded_at": utc_now(),
    }
    try:
        with session.begin_nested():
            _write(session, [row])
    except SQLAlchemyError as exc:
        HISTORY_FALLBACKS.labels("upsert").inc()
        logger.warning(
            "history_upsert_failed",
            provider_id=provider_id,
            month_key=month_key,
            error=str(exc),
        )
        return False
    return True


def list_history(session: Session, provider_id: str) -> List[dict]:
    """Return every ledger entry for ``provider_id`` ordered oldest first."""

    rows = session.execute(
        select(ComplianceHistory)
        .where(ComplianceHistory.provider_id == provider_id)
        .order_by(ComplianceHistory.month_key.asc())
    ).scalars()
    return [row.to_dict() for row in rows]


def _as_score(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def seed_history(session: Session, history: Mapping[str, Mapping[str, object]]) -> int:
    """Bulk upsert ``{provider_id: {month_key: score}}``; return rows written.

    Scores that are not numeric are skipped.
    """

    now = utc_now()
    rows: List[dict] = []
    for provider_id, months in history.items():
        if not isinstance(months, Mapping):
            continue
        for key, raw_score in months.items():
            score = _as_score(raw_score)
            if score is None:
                logger.warning("history_seed_skipped", provider_id=provider_id, month_key=key, score=repr(raw_score))
                continue
            rows.append(
                {
                    "provider_id": str(provider_id),
                    "month_key": str(key),
                    "score": score,
                    "recorded_at": now,
                }
            )
    if rows:
        _write(session, rows)
    return len(rows)


__all__ = [
    "HistoryResult",
    "HistoryUnavailable",
    "HistoryWindow",
    "fetch_window",
    "list_history",
    "month_key",
    "record_score",
    "seed_history",
]
