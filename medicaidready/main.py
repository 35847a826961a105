"""
HTTP API for the MedicaidReady readiness tracker.

The application exposes provider onboarding checklists, per-provider
snapshots and the portfolio analytics used by the compliance report.  All
responses use the ``{"ok": ...}`` envelope; failures carry an ``error`` code
and a human readable ``message``.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match
from structlog.contextvars import bind_contextvars, unbind_contextvars

from medicaidready import history
from medicaidready.access import Role, ensure_writable, get_config, require_roles
from medicaidready.analytics import build_portfolio
from medicaidready.config import AppConfig, get_app_config
from medicaidready.db.session import get_session
from medicaidready.errors import DatabaseReadError, InvalidRequest, ProviderNotFound, ReadinessError
from medicaidready.providers import ProviderRepository, summarise
from medicaidready.schemas import (
    ChecklistUpdateRequest,
    CompleteRequest,
    OnboardUpdateRequest,
    ProviderCreateRequest,
)
from medicaidready.time_utils import isoformat_utc


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(__name__)

REQUEST_COUNTER = Counter(
    "medicaidready_http_requests_total",
    "HTTP requests handled by the API",
    ("method", "path", "status"),
)
REQUEST_LATENCY = Histogram(
    "medicaidready_http_request_seconds",
    "HTTP request latency",
    ("method", "path"),
)


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    ok: bool = False
    error: str
    message: str

    model_config = {"extra": "allow"}


def _build_error_response(detail: Any, status_code: int) -> ErrorResponse:
    """Normalise an ``HTTPException`` detail into :class:`ErrorResponse`."""

    if isinstance(detail, dict):
        extras = {k: v for k, v in detail.items() if k not in {"ok", "error", "message"}}
        return ErrorResponse(
            error=str(detail.get("error") or status_code),
            message=str(detail.get("message") or detail.get("error") or "An error occurred"),
            **extras,
        )
    message = str(detail) if detail not in (None, "") else "An error occurred"
    code = {404: "not_found", 405: "method_not_allowed"}.get(status_code, "http_error")
    return ErrorResponse(error=code, message=message)


def _provider_id(raw: str) -> str:
    provider_id = raw.strip()
    if not provider_id:
        raise InvalidRequest("Provider id is required in the URL path.", code="missing_provider_id")
    return provider_id


def _path_template(request: Request) -> str:
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


# ---------------------------------------------------------------------------
# Provider routes
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api/providers", tags=["providers"])
readers = require_roles(Role.VIEWER, Role.ANALYST)


@router.get("")
def list_providers(
    role: Role = Depends(readers),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    providers = ProviderRepository(session).list_all()
    return {"ok": True, "providers": [summarise(provider) for provider in providers]}


@router.post("", dependencies=[Depends(ensure_writable)])
def create_provider(
    payload: Optional[ProviderCreateRequest] = None,
    role: Role = Depends(require_roles()),
    session: Session = Depends(get_session),
) -> JSONResponse:
    payload = payload or ProviderCreateRequest()
    provider, created = ProviderRepository(session).create(
        payload.id,
        name=payload.name,
        provider_type_code=payload.provider_type_code,
        jurisdiction_code=payload.jurisdiction_code,
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content={"ok": True, "provider": summarise(provider), "created": created},
    )


@router.get("/analytics")
def provider_analytics(
    role: Role = Depends(readers),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    try:
        summary = build_portfolio(session)
    except DatabaseReadError as exc:
        raise ReadinessError(exc.message, code="analytics_failed") from exc
    return {"ok": True, "role": role.value, **summary.to_dict()}


@router.get("/{provider_id}/checklist")
def get_checklist(provider_id: str, session: Session = Depends(get_session)) -> Dict[str, Any]:
    provider, _ = ProviderRepository(session).get_or_create(_provider_id(provider_id))
    data = provider.to_dict()
    return {
        "ok": True,
        "providerId": provider.id,
        "checklist": data["checklist"],
        "updatedAt": data["updatedAt"],
    }


@router.api_route("/{provider_id}/checklist", methods=["PUT", "PATCH"], dependencies=[Depends(ensure_writable)])
def update_checklist(
    provider_id: str,
    payload: Optional[ChecklistUpdateRequest] = None,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    payload = payload or ChecklistUpdateRequest()
    updates = payload.as_updates()
    if not updates:
        raise InvalidRequest("Provide { items: [{ key, status }] } or { key, status }.")
    provider, updated_keys = ProviderRepository(session).update_checklist(_provider_id(provider_id), updates)
    data = provider.to_dict()
    return {
        "ok": True,
        "providerId": provider.id,
        "updatedKeys": updated_keys,
        "checklist": data["checklist"],
        "updatedAt": data["updatedAt"],
    }


@router.post("/{provider_id}/complete", dependencies=[Depends(ensure_writable)])
def complete(
    provider_id: str,
    payload: Optional[CompleteRequest] = None,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    payload = payload or CompleteRequest()
    repo = ProviderRepository(session)
    clean_id = _provider_id(provider_id)
    if payload.completeOnboarding:
        provider = repo.complete_onboarding(clean_id)
        data = provider.to_dict()
        return {
            "ok": True,
            "providerId": provider.id,
            "action": "onboarding_completed",
            "onboard": data["onboard"],
            "updatedAt": data["updatedAt"],
        }

    key = (payload.key or "").strip()
    if not key:
        raise InvalidRequest("Provide { key: '<checklist_item_key>' } or { completeOnboarding: true }.")
    provider = repo.complete_item(clean_id, key, payload.notes)
    data = provider.to_dict()
    return {
        "ok": True,
        "providerId": provider.id,
        "action": "checklist_item_completed",
        "completedKey": key,
        "checklist": data["checklist"],
        "updatedAt": data["updatedAt"],
    }


@router.get("/{provider_id}/onboard")
def get_onboard(provider_id: str, session: Session = Depends(get_session)) -> Dict[str, Any]:
    provider, _ = ProviderRepository(session).get_or_create(_provider_id(provider_id))
    data = provider.to_dict()
    return {"ok": True, "providerId": provider.id, "onboard": data["onboard"], "updatedAt": data["updatedAt"]}


@router.api_route("/{provider_id}/onboard", methods=["POST", "PUT", "PATCH"], dependencies=[Depends(ensure_writable)])
def update_onboard(
    provider_id: str,
    payload: Optional[OnboardUpdateRequest] = None,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    payload = payload or OnboardUpdateRequest()
    provider = ProviderRepository(session).update_onboard(
        _provider_id(provider_id),
        status=payload.status,
        contact=payload.contact.model_dump() if payload.contact else None,
        org=payload.org.model_dump() if payload.org else None,
    )
    data = provider.to_dict()
    return {"ok": True, "providerId": provider.id, "onboard": data["onboard"], "updatedAt": data["updatedAt"]}


@router.get("/{provider_id}/snapshot")
def get_snapshot(provider_id: str, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return {"ok": True, **ProviderRepository(session).snapshot(_provider_id(provider_id))}


@router.get("/{provider_id}/history")
def get_history(
    provider_id: str,
    role: Role = Depends(readers),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    clean_id = _provider_id(provider_id)
    if ProviderRepository(session).get(clean_id) is None:
        raise ProviderNotFound(f"Provider '{clean_id}' does not exist.")
    return {"ok": True, "providerId": clean_id, "history": history.list_history(session, clean_id)}


@router.get("/{provider_id}/health")
def provider_health(provider_id: str) -> Dict[str, Any]:
    return {
        "ok": True,
        "providerId": _provider_id(provider_id),
        "service": "providers/[id]/health",
        "status": "healthy",
        "timestamp": isoformat_utc(),
    }


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    config = config or get_app_config()
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "lifespan_startup",
            environment=config.environment,
            read_only=config.read_only_mode,
            access_control=config.access_control_enabled,
        )
        start_ts = time.time()
        try:
            yield
        finally:
            logger.info("lifespan_shutdown_complete", uptime=time.time() - start_ts)

    app = FastAPI(title="MedicaidReady API", lifespan=lifespan)
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in config.allowed_origins else list(config.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def track_http_metrics(request: Request, call_next):
        """Emit Prometheus counters and histograms for each request."""

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            template = _path_template(request)
            REQUEST_COUNTER.labels(request.method, template, "500").inc()
            REQUEST_LATENCY.labels(request.method, template).observe(time.perf_counter() - start)
            raise
        template = _path_template(request)
        REQUEST_COUNTER.labels(request.method, template, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, template).observe(time.perf_counter() - start)
        return response

    @app.middleware("http")
    async def inject_trace_id(request: Request, call_next):
        """Attach or propagate a trace identifier for each request."""

        trace_id = request.headers.get("x-trace-id") or uuid.uuid4().hex
        bind_contextvars(trace_id=trace_id, path=request.url.path, method=request.method)
        request.state.trace_id = trace_id
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed")
            raise
        finally:
            unbind_contextvars("trace_id", "path", "method")
        response.headers["X-Trace-Id"] = trace_id
        return response

    @app.exception_handler(ReadinessError)
    async def readiness_error_handler(request: Request, exc: ReadinessError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_error", error=exc.code, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Convert ``HTTPException`` instances into the standard error envelope."""

        payload = _build_error_response(exc.detail, exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=payload.model_dump(),
            headers=dict(getattr(exc, "headers", None) or {}),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        payload = ErrorResponse(
            error="invalid_body",
            message="Request body failed validation.",
            details=[
                {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors()
            ],
        )
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload.model_dump())

    @app.get("/health", tags=["system"])
    def health(config: AppConfig = Depends(get_config)) -> Dict[str, Any]:
        return {
            "ok": True,
            "service": config.service_name,
            "accessControlEnabled": config.access_control_enabled,
            "readOnlyMode": config.read_only_mode,
            "timestamp": isoformat_utc(),
        }

    @app.get("/metrics", tags=["system"])
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
