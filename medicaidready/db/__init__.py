"""Database helpers for MedicaidReady."""

from __future__ import annotations

from .config import DatabaseSettings, get_database_settings
from .models import Base, ChecklistStatus, ComplianceHistory, Provider
from .session import configure_engine, get_session, session_scope

__all__ = [
    "Base",
    "ChecklistStatus",
    "ComplianceHistory",
    "DatabaseSettings",
    "Provider",
    "configure_engine",
    "get_database_settings",
    "get_session",
    "session_scope",
]
