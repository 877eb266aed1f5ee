import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import BridgeConfig, MAX_USAGE_DAYS, MIN_USAGE_DAYS, resolve_bridge_config, settings
from app.dependencies.auth import verify_bearer_token
from app.metrics import GATEWAY_CALLS, SUMMARY_REQUESTS
from app.schemas.widget import ErrorResponse, HealthSummary, SummaryResponse, UsageSummary
from app.services.command_runner import CommandRunner, run_command_with_timeout
from app.services.gateway_client import (
    EmptyOutputError,
    GatewayCallError,
    InvalidJsonError,
    call_gateway_method,
)
from app.services.usage import normalize_daily_usage, to_finite_number

logger = logging.getLogger(__name__)

PLUGIN_ID = "openclaw-widget-bridge"
SUMMARY_PATH = "/widget/summary"

HEALTH_METHOD = "health"
USAGE_METHOD = "usage.cost"

# Any other method on the summary path is answered by _method_not_allowed_handler
_ROUTE_METHODS = ["GET"]


class WidgetJSONResponse(JSONResponse):
    media_type = "application/json; charset=utf-8"

    def __init__(self, content: Any, status_code: int = 200, headers: Optional[dict] = None, **kwargs):
        merged = {"Cache-Control": "no-store"}
        merged.update(headers or {})
        super().__init__(content, status_code=status_code, headers=merged, **kwargs)


# --- Request-terminal errors ---

class WidgetRequestError(Exception):
    """Ends the request before any gateway call is made."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_error"
    headers: Optional[dict] = None


class MethodNotAllowedError(WidgetRequestError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    error = "method_not_allowed"
    headers = {"Allow": "GET"}


class NotConfiguredError(WidgetRequestError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "plugin_not_configured"


class UnauthorizedError(WidgetRequestError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    headers = {"WWW-Authenticate": "Bearer"}


async def widget_request_error_handler(request: Request, exc: WidgetRequestError):
    SUMMARY_REQUESTS.labels(outcome=exc.error).inc()
    logger.info(f"Rejected {request.method} {request.url.path}: {exc.error}")
    return WidgetJSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error).model_dump(),
        headers=exc.headers,
    )


# --- Dependencies (overridable by tests and embedders) ---

def get_plugin_config() -> dict:
    return settings.plugin_config()


def get_command_runner() -> CommandRunner:
    return run_command_with_timeout


# --- Helpers ---

@dataclass
class CallOutcome:
    """Settled result of one gateway call: a value, or the error that replaced it."""
    value: Any = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _outcome_label(error: Exception) -> str:
    if isinstance(error, GatewayCallError):
        return "process_error"
    if isinstance(error, EmptyOutputError):
        return "empty_output"
    if isinstance(error, InvalidJsonError):
        return "invalid_json"
    return "spawn_error"


async def _settle(method: str, call) -> CallOutcome:
    try:
        value = await call
    except Exception as e:
        logger.warning(f"Gateway method '{method}' failed ({type(e).__name__}): {e}")
        GATEWAY_CALLS.labels(method=method, outcome=_outcome_label(e)).inc()
        return CallOutcome(error=e)
    GATEWAY_CALLS.labels(method=method, outcome="ok").inc()
    return CallOutcome(value=value)


def resolve_days(raw: Optional[str], default_days: int) -> int:
    """Accepts a finite number in [1, 90] (floored), otherwise the default."""
    if raw is None:
        return default_days
    text = raw.strip()
    # float() accepts digit separators, which are not numbers on the wire
    if not text or "_" in text:
        return default_days
    try:
        number = float(text)
    except ValueError:
        return default_days
    if not math.isfinite(number) or number < MIN_USAGE_DAYS or number > MAX_USAGE_DAYS:
        return default_days
    return int(math.floor(number))


def _days_from_request(request: Request, default_days: int) -> int:
    try:
        values = request.query_params.getlist("days")
    except (ValueError, UnicodeError) as e:
        logger.debug(f"Ignoring malformed query string: {e}")
        return default_days
    return resolve_days(values[0] if values else None, default_days)


def _get(payload: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def build_summary(days: int, health: CallOutcome, usage: CallOutcome, now_ms: int) -> SummaryResponse:
    """Merges the two settled gateway calls into the widget summary."""
    health_payload = health.value if health.succeeded else None
    usage_payload = usage.value if usage.succeeded else None

    # An explicit boolean "ok" wins; otherwise a successful call counts as healthy
    reported_ok = _get(health_payload, "ok")
    health_ok = reported_ok if isinstance(reported_ok, bool) else health.succeeded

    return SummaryResponse(
        ok=True,
        updatedAt=now_ms,
        health=HealthSummary(
            status="up" if health_ok else "down",
            latencyMs=to_finite_number(_get(health_payload, "durationMs")),
            checkedAt=to_finite_number(_get(health_payload, "ts")),
        ),
        usage=UsageSummary(
            days=days,
            startDate=_string_or_none(_get(usage_payload, "startDate")),
            endDate=_string_or_none(_get(usage_payload, "endDate")),
            totalTokens=to_finite_number(_get(usage_payload, "totals", "totalTokens")),
            totalCostUsd=to_finite_number(_get(usage_payload, "totals", "totalCost")),
            daily=normalize_daily_usage(_get(usage_payload, "daily")),
            updatedAt=to_finite_number(_get(usage_payload, "updatedAt")),
        ),
    )


# --- Router Definition ---

router = APIRouter(
    tags=["Widget"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized: missing or invalid bearer token."},
        405: {"model": ErrorResponse, "description": "Method Not Allowed: only GET is supported."},
        500: {"model": ErrorResponse, "description": "Plugin not configured: no API token set."},
    },
)


@router.api_route(
    SUMMARY_PATH,
    methods=_ROUTE_METHODS,
    response_model=SummaryResponse,
    summary="Gateway health and usage summary for the dashboard widget",
    description="""
Aggregates the gateway `health` and `usage.cost` methods into one JSON document.

**Headers:** `Authorization: Bearer <token>` (required).

**Query:** `days` (integer 1-90, optional). Out-of-range or non-numeric values fall back to the configured default.

Once authenticated the endpoint always answers 200; a failed gateway call shows up as
`health.status = "down"` or null usage fields.
    """
)
async def widget_summary(
    request: Request,
    plugin_config: dict = Depends(get_plugin_config),
    run_command: CommandRunner = Depends(get_command_runner),
):
    if (request.method or "GET").upper() != "GET":
        raise MethodNotAllowedError()

    config: BridgeConfig = resolve_bridge_config(plugin_config)
    if not config.is_configured:
        logger.error("Widget summary requested but no API token is configured.")
        raise NotConfiguredError()

    if not verify_bearer_token(request.headers.get("authorization"), config.api_token):
        raise UnauthorizedError()

    days = _days_from_request(request, config.default_days)
    logger.info(f"Widget summary request: days={days}, cli={config.cli_path}")

    health, usage = await asyncio.gather(
        _settle(HEALTH_METHOD, call_gateway_method(
            run_command, config.cli_path, config.timeout_ms, HEALTH_METHOD,
        )),
        _settle(USAGE_METHOD, call_gateway_method(
            run_command, config.cli_path, config.timeout_ms, USAGE_METHOD, payload={"days": days},
        )),
    )

    summary = build_summary(days, health, usage, now_ms=int(time.time() * 1000))
    SUMMARY_REQUESTS.labels(outcome="ok").inc()
    return WidgetJSONResponse(content=summary.model_dump())


def register(app: FastAPI, prefix: str = "") -> None:
    """Mounts the widget route and its error handlers on a FastAPI app."""
    summary_path = f"{prefix}{SUMMARY_PATH}"

    async def _method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
        # The router rejects non-GET methods before the route runs
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and request.url.path == summary_path:
            return await widget_request_error_handler(request, MethodNotAllowedError())
        return await http_exception_handler(request, exc)

    app.include_router(router, prefix=prefix)
    app.add_exception_handler(WidgetRequestError, widget_request_error_handler)
    app.add_exception_handler(StarletteHTTPException, _method_not_allowed_handler)
    logger.info(f"Registered {PLUGIN_ID} route at {prefix}{SUMMARY_PATH}")
