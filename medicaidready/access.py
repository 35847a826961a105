"""Role resolution and write gating for the provider API."""

from __future__ import annotations

import enum
from typing import Callable

import structlog
from fastapi import Depends, HTTPException, Request, status

from medicaidready.config import AppConfig

logger = structlog.get_logger(__name__)

ROLE_HEADER = "X-MedicaidReady-Role"
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class Role(str, enum.Enum):
    VIEWER = "viewer"
    ANALYST = "analyst"
    ADMIN = "admin"


def get_config(request: Request) -> AppConfig:
    """FastAPI dependency returning the configuration attached at startup."""

    return request.app.state.config


def resolve_role(config: AppConfig, header_value: str | None) -> Role:
    """Return the caller's role.

    With access control disabled every caller is an admin; otherwise the role
    header decides and unknown values fall back to viewer.
    """

    if not config.access_control_enabled:
        return Role.ADMIN
    value = (header_value or "").strip().lower()
    if value == Role.ADMIN.value:
        return Role.ADMIN
    if value == Role.ANALYST.value:
        return Role.ANALYST
    return Role.VIEWER


def require_roles(*roles: Role) -> Callable[..., Role]:
    """Dependency factory ensuring the caller holds one of ``roles``."""

    allowed = {Role.ADMIN, *roles}

    def checker(request: Request, config: AppConfig = Depends(get_config)) -> Role:
        role = resolve_role(config, request.headers.get(ROLE_HEADER))
        if role not in allowed:
            logger.info("access_denied", path=request.url.path, role=role.value)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "forbidden", "message": "Insufficient privileges", "role": role.value},
            )
        return role

    return checker


def ensure_writable(request: Request, config: AppConfig = Depends(get_config)) -> None:
    """Reject provider writes while the read-only switch is on."""

    if config.read_only_mode and request.method.upper() in WRITE_METHODS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "read_only_mode",
                "message": "Writes are disabled (READ_ONLY_MODE=true).",
            },
        )


__all__ = ["ROLE_HEADER", "Role", "ensure_writable", "get_config", "require_roles", "resolve_role"]
