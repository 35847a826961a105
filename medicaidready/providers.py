"""Provider records and their onboarding checklist.

Providers are created on first access: :meth:`ProviderRepository.get_or_create`
is the single place that implements that policy.  Rows store ``meta``,
``onboard`` and ``checklist`` as JSON documents; every mutation assigns a
fresh copy so SQLAlchemy detects the change.
"""

from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicaidready.db.models import ChecklistStatus, Provider
from medicaidready.errors import ChecklistItemNotFound, DatabaseReadError, NoValidUpdates
from medicaidready.scoring import compute_progress
from medicaidready.time_utils import epoch_millis, isoformat_utc, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_CHECKLIST: Tuple[Tuple[str, str], ...] = (
    ("provider_profile", "Provider profile completed"),
    ("credentialing", "Credentialing verified"),
    ("enrollment", "Enrollment documents submitted"),
    ("compliance_training", "Compliance training completed"),
    ("attestation", "Attestation signed"),
)

_STATUSES = {status.value for status in ChecklistStatus}
_CONTACT_FIELDS = ("name", "email", "phone")
_ORG_FIELDS = ("name", "npi", "medicaidId")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def clean_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def normalise_status(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value in _STATUSES else None


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower().strip()).strip("-")


def generate_provider_id(name: Optional[str], now: Optional[datetime] = None) -> str:
    millis = str(epoch_millis(now))
    base = slugify(name or f"provider-{millis}")
    return f"{base}-{millis[-6:]}"


def build_default_checklist(timestamp: Optional[str] = None) -> List[Dict[str, Any]]:
    stamp = timestamp or isoformat_utc()
    return [
        {"key": key, "title": title, "status": ChecklistStatus.NOT_STARTED.value, "updatedAt": stamp}
        for key, title in DEFAULT_CHECKLIST
    ]


def apply_item_status(item: Dict[str, Any], status: str, stamp: str) -> None:
    """Set ``status`` on ``item`` keeping ``completedAt`` consistent."""

    item["status"] = status
    item["updatedAt"] = stamp
    if status == ChecklistStatus.COMPLETE.value:
        item["completedAt"] = item.get("completedAt") or stamp
    else:
        item.pop("completedAt", None)


def summarise(provider: Provider) -> Dict[str, Any]:
    """List-view representation of ``provider``."""

    data = provider.to_dict()
    return {
        "id": data["id"],
        "createdAt": data["createdAt"],
        "updatedAt": data["updatedAt"],
        "meta": data["meta"],
        "onboardStatus": data["onboard"].get("status") or ChecklistStatus.NOT_STARTED.value,
        "progress": compute_progress(data["checklist"]).to_dict(),
    }


class ProviderRepository:
    """Persistence operations for providers bound to one session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, provider_id: str) -> Optional[Provider]:
        return self.session.get(Provider, provider_id)

    def get_or_create(self, provider_id: str) -> Tuple[Provider, bool]:
        existing = self.get(provider_id)
        if existing is not None:
            return existing, False
        now = utc_now()
        provider = Provider(
            id=provider_id,
            meta={},
            onboard={"status": ChecklistStatus.NOT_STARTED.value},
            checklist=build_default_checklist(isoformat_utc(now)),
            created_at=now,
            updated_at=now,
        )
        self.session.add(provider)
        self.session.flush()
        logger.info("provider_created", provider_id=provider_id, implicit=True)
        return provider, True

    def list_all(self) -> List[Provider]:
        try:
            return list(
                self.session.execute(select(Provider).order_by(Provider.updated_at.desc())).scalars()
            )
        except SQLAlchemyError as exc:
            logger.error("providers_fetch_failed", error=str(exc))
            raise DatabaseReadError(str(exc)) from exc

    def create(
        self,
        provider_id: Optional[str] = None,
        *,
        name: Optional[str] = None,
        provider_type_code: Optional[str] = None,
        jurisdiction_code: Optional[str] = None,
    ) -> Tuple[Provider, bool]:
        now = utc_now()
        clean_id = clean_string(provider_id) or generate_provider_id(clean_string(name), now)
        existing = self.get(clean_id)
        if existing is not None:
            return existing, False
        provider = Provider(
            id=clean_id,
            name=clean_string(name) or "Unknown Provider",
            meta={
                "name": clean_string(name),
                "provider_type_code": clean_string(provider_type_code),
                "jurisdiction_code": clean_string(jurisdiction_code),
            },
            onboard={"status": ChecklistStatus.NOT_STARTED.value},
            checklist=build_default_checklist(isoformat_utc(now)),
            created_at=now,
            updated_at=now,
        )
        self.session.add(provider)
        self.session.flush()
        logger.info("provider_created", provider_id=clean_id, implicit=False)
        return provider, True

    def update_checklist(self, provider_id: str, updates: Sequence[Mapping[str, Any]]) -> Tuple[Provider, List[str]]:
        provider, _ = self.get_or_create(provider_id)
        now = utc_now()
        stamp = isoformat_utc(now)
        items = copy.deepcopy(provider.checklist_items())
        by_key = {item.get("key"): item for item in items}

        updated: List[str] = []
        for update in updates:
            if not isinstance(update, Mapping):
                continue
            key = clean_string(update.get("key"))
            status = normalise_status(update.get("status"))
            if not key or not status or key not in by_key:
                continue
            item = by_key[key]
            apply_item_status(item, status, stamp)
            if isinstance(update.get("notes"), str):
                item["notes"] = update["notes"]
            updated.append(key)

        if not updated:
            raise NoValidUpdates("No valid checklist updates were provided.")

        provider.checklist = items
        provider.updated_at = now
        self.session.flush()
        return provider, updated

    def complete_item(self, provider_id: str, key: str, notes: Optional[str] = None) -> Provider:
        provider, _ = self.get_or_create(provider_id)
        now = utc_now()
        items = copy.deepcopy(provider.checklist_items())
        item = next((entry for entry in items if entry.get("key") == key), None)
        if item is None:
            raise ChecklistItemNotFound(f"No checklist item found for key '{key}'.")
        apply_item_status(item, ChecklistStatus.COMPLETE.value, isoformat_utc(now))
        if isinstance(notes, str):
            item["notes"] = notes
        provider.checklist = items
        provider.updated_at = now
        self.session.flush()
        return provider

    def complete_onboarding(self, provider_id: str) -> Provider:
        provider, _ = self.get_or_create(provider_id)
        now = utc_now()
        stamp = isoformat_utc(now)
        onboard = copy.deepcopy(provider.onboard_dict())
        onboard["status"] = ChecklistStatus.COMPLETE.value
        onboard["startedAt"] = onboard.get("startedAt") or stamp
        onboard["completedAt"] = onboard.get("completedAt") or stamp
        provider.onboard = onboard
        provider.updated_at = now
        self.session.flush()
        return provider

    def update_onboard(
        self,
        provider_id: str,
        *,
        status: Any = None,
        contact: Optional[Mapping[str, Any]] = None,
        org: Optional[Mapping[str, Any]] = None,
    ) -> Provider:
        provider, _ = self.get_or_create(provider_id)
        now = utc_now()
        stamp = isoformat_utc(now)
        current = provider.onboard_dict()
        onboard = copy.deepcopy(current)

        next_status = normalise_status(status)
        if next_status == ChecklistStatus.IN_PROGRESS.value:
            onboard["startedAt"] = onboard.get("startedAt") or stamp
            onboard.pop("completedAt", None)
        elif next_status == ChecklistStatus.COMPLETE.value:
            onboard["startedAt"] = onboard.get("startedAt") or stamp
            onboard["completedAt"] = onboard.get("completedAt") or stamp
        elif next_status == ChecklistStatus.NOT_STARTED.value:
            onboard.pop("startedAt", None)
            onboard.pop("completedAt", None)
        elif current.get("status") == ChecklistStatus.NOT_STARTED.value:
            # Saving onboarding details without a status starts onboarding.
            next_status = ChecklistStatus.IN_PROGRESS.value
            onboard["startedAt"] = onboard.get("startedAt") or stamp
        if next_status:
            onboard["status"] = next_status

        onboard["contact"] = _merge_fields(onboard.get("contact"), contact, _CONTACT_FIELDS)
        onboard["org"] = _merge_fields(onboard.get("org"), org, _ORG_FIELDS)

        provider.onboard = onboard
        provider.updated_at = now
        self.session.flush()
        return provider

    def snapshot(self, provider_id: str) -> Dict[str, Any]:
        provider, _ = self.get_or_create(provider_id)
        data = provider.to_dict()
        return {
            "providerId": provider.id,
            "createdAt": data["createdAt"],
            "updatedAt": data["updatedAt"],
            "onboard": data["onboard"],
            "checklist": data["checklist"],
            "progress": compute_progress(data["checklist"]).to_dict(),
            "snapshotAt": isoformat_utc(),
        }

    def upsert_raw(self, record: Mapping[str, Any]) -> Provider:
        """Insert or replace a provider from an archived JSON record."""

        now = utc_now()
        provider_id = str(record.get("id"))
        provider = self.get(provider_id) or Provider(id=provider_id, created_at=now)
        provider.name = clean_string(record.get("name")) or "Unknown Provider"
        meta = record.get("meta")
        onboard = record.get("onboard")
        checklist = record.get("checklist")
        provider.meta = dict(meta) if isinstance(meta, Mapping) else {}
        provider.onboard = dict(onboard) if isinstance(onboard, Mapping) else {}
        provider.checklist = list(checklist) if isinstance(checklist, list) else []
        provider.updated_at = now
        self.session.add(provider)
        self.session.flush()
        return provider


def _merge_fields(
    current: Any, incoming: Optional[Mapping[str, Any]], fields: Sequence[str]
) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(current) if isinstance(current, Mapping) else {}
    source = incoming if isinstance(incoming, Mapping) else {}
    for name in fields:
        value = clean_string(source.get(name))
        if value is not None:
            merged[name] = value
        else:
            merged.setdefault(name, None)
    return merged


__all__ = [
    "DEFAULT_CHECKLIST",
    "ProviderRepository",
    "apply_item_status",
    "build_default_checklist",
    "clean_string",
    "generate_provider_id",
    "slugify",
    "summarise",
]
