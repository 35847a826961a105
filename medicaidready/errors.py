"""Exception types raised by the readiness services.

Each error carries the machine readable ``code`` and the HTTP status the API
layer answers with.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ReadinessError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, code: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code

    def to_payload(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.code, "message": self.message}


class DatabaseReadError(ReadinessError):
    """The provider store could not be read."""

    status_code = 500
    code = "providers_fetch_failed"


class ProviderNotFound(ReadinessError):
    status_code = 404
    code = "provider_not_found"


class ChecklistItemNotFound(ReadinessError):
    status_code = 404
    code = "checklist_item_not_found"


class InvalidRequest(ReadinessError):
    status_code = 400
    code = "invalid_body"


class NoValidUpdates(InvalidRequest):
    code = "no_valid_updates"


__all__ = [
    "ReadinessError",
    "DatabaseReadError",
    "ProviderNotFound",
    "ChecklistItemNotFound",
    "InvalidRequest",
    "NoValidUpdates",
]
