"""SQLAlchemy models for providers and their monthly score ledger."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

import sqlalchemy as sa
from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class ChecklistStatus(str, enum.Enum):
    """Tri-state status of a checklist item or onboarding record."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class Provider(Base):
    __tablename__ = "providers"

    id = sa.Column(String, primary_key=True)
    name = sa.Column(String, nullable=True)
    meta = sa.Column(sa.JSON, nullable=False, default=dict)
    onboard = sa.Column(sa.JSON, nullable=False, default=dict)
    checklist = sa.Column(sa.JSON, nullable=False, default=list)
    created_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
    )
    updated_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
        index=True,
    )

    def meta_dict(self) -> Dict[str, Any]:
        return dict(self.meta) if isinstance(self.meta, Mapping) else {}

    def onboard_dict(self) -> Dict[str, Any]:
        if isinstance(self.onboard, Mapping) and self.onboard:
            return dict(self.onboard)
        return {"status": ChecklistStatus.NOT_STARTED.value}

    def checklist_items(self) -> List[Dict[str, Any]]:
        if not isinstance(self.checklist, list):
            return []
        return [dict(item) for item in self.checklist if isinstance(item, Mapping)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
            "meta": self.meta_dict(),
            "onboard": self.onboard_dict(),
            "checklist": self.checklist_items(),
        }


class ComplianceHistory(Base):
    __tablename__ = "compliance_history"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    provider_id = sa.Column(String, nullable=False, index=True)
    month_key = sa.Column(String(7), nullable=False)
    score = sa.Column(Integer, nullable=False)
    recorded_at = sa.Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        sa.UniqueConstraint("provider_id", "month_key", name="uq_compliance_history_provider_month"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "monthKey": self.month_key,
            "score": self.score,
            "recordedAt": _isoformat(self.recorded_at),
        }
