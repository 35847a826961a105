"""Load archived provider and history JSON into the database."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog
from sqlalchemy.orm import Session

from medicaidready import history
from medicaidready.providers import ProviderRepository

logger = structlog.get_logger(__name__)


@dataclass
class SeedReport:
    providers_upserted: int = 0
    history_upserted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "seeded": True,
            "providersUpserted": self.providers_upserted,
            "historyUpserted": self.history_upserted,
        }


def normalise_providers(raw: Any) -> List[Mapping[str, Any]]:
    """Accept a list, ``{"providers": [...]}`` or an id-keyed mapping."""

    if isinstance(raw, list):
        candidates = raw
    elif isinstance(raw, Mapping):
        inner = raw.get("providers", raw)
        if isinstance(inner, list):
            candidates = inner
        elif isinstance(inner, Mapping):
            candidates = list(inner.values())
        else:
            candidates = []
    else:
        candidates = []
    return [item for item in candidates if isinstance(item, Mapping) and item.get("id") is not None]


def normalise_history(raw: Any) -> Mapping[str, Mapping[str, Any]]:
    if isinstance(raw, Mapping) and isinstance(raw.get("history"), Mapping):
        return raw["history"]
    return {}


def read_json(path: Optional[Path]) -> Any:
    if path is None:
        return None
    with Path(path).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def seed(session: Session, providers_raw: Any, history_raw: Any = None) -> SeedReport:
    """Upsert providers and their monthly scores; the caller owns the transaction."""

    report = SeedReport()
    repo = ProviderRepository(session)
    for record in normalise_providers(providers_raw):
        repo.upsert_raw(record)
        report.providers_upserted += 1
    report.history_upserted = history.seed_history(session, normalise_history(history_raw))
    logger.info(
        "seed_completed",
        providers=report.providers_upserted,
        history=report.history_upserted,
    )
    return report


__all__ = ["SeedReport", "normalise_history", "normalise_providers", "read_json", "seed"]
