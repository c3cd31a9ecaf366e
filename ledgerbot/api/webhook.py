"""
HTTP surface: the Twilio webhook plus a small dashboard API.

The routes only authenticate, validate and delegate. All conversation
logic lives in the ConversationEngine, reached through app.state.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from ledgerbot import __version__
from ledgerbot.models.transaction import InboundMessage
from ledgerbot.orchestrator import AppComponents, create_app_components
from ledgerbot.services.messaging import (
    AuthenticationFailedError,
    strip_whatsapp_prefix,
)
from ledgerbot.services.storage import StorageError


logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "x-twilio-signature"


class MessageValidationError(ValueError):
    """Inbound webhook payload is missing a required field."""
    pass


def _components(request: Request) -> AppComponents:
    return request.app.state.components


def _twilio_request_url(request: Request) -> str:
    url = request.url
    proto = request.headers.get("x-forwarded-proto")
    host = request.headers.get("x-forwarded-host")
    if proto:
        url = url.replace(scheme=proto)
    if host:
        url = url.replace(netloc=host)
    return str(url)


async def _read_params(request: Request) -> dict[str, str]:
    """Form body (Twilio) or JSON body, flattened to strings."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in payload.items()}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def parse_inbound(params: dict[str, str]) -> InboundMessage:
    body = (params.get("Body") or "").strip()
    if not body:
        raise MessageValidationError("Message body is required")
    sender = strip_whatsapp_prefix(params.get("From") or "")
    if not sender:
        raise MessageValidationError("Sender is required")
    return InboundMessage(sender=sender, body=body)


def _server_error(components: AppComponents, error: Exception, message: str) -> JSONResponse:
    content = {"status": "error", "message": message}
    if components.app_settings.debug_mode:
        content["error"] = str(error)
    return JSONResponse(status_code=500, content=content)


webhook_router = APIRouter(prefix="/webhook")
dashboard_router = APIRouter(prefix="/dashboard")


@webhook_router.post("")
async def receive_message(request: Request) -> JSONResponse:
    components = _components(request)
    params = await _read_params(request)

    url = components.webhook_url or _twilio_request_url(request)
    try:
        components.authenticator.authenticate(
            url, params, request.headers.get(SIGNATURE_HEADER)
        )
    except AuthenticationFailedError:
        await components.audit_logger.log_signature_rejected(url, params.get("From"))
        return JSONResponse(status_code=403, content={"error": "Invalid signature"})

    try:
        inbound = parse_inbound(params)
    except MessageValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        outcome = await components.engine.handle_message(inbound.sender, inbound.body)
    except Exception as e:
        logger.error("webhook_failed", sender=inbound.sender, error=str(e), exc_info=True)
        await components.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
            details={"sender": inbound.sender},
        )
        return _server_error(components, e, "Internal server error")

    return JSONResponse(
        status_code=200,
        content={
            "status": "success",
            "message": "Message processed successfully",
            "action": outcome.action.value,
            "state": outcome.state.value,
        },
    )


@webhook_router.get("/health")
async def webhook_health() -> dict:
    return {"status": "healthy"}


@dashboard_router.get("/logs")
async def recent_logs(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
) -> JSONResponse:
    components = _components(request)
    try:
        entries = await components.audit_logger.recent_exchanges(limit)
    except StorageError as e:
        logger.error("chat_log_read_failed", error=str(e))
        return _server_error(components, e, "Failed to fetch chat logs")

    return JSONResponse(
        content={
            "status": "success",
            "data": [entry.to_dashboard_dict() for entry in entries],
        }
    )


@dashboard_router.get("/status")
async def bot_status(request: Request) -> dict:
    components = _components(request)
    return {
        "status": "success",
        "data": {
            "uptime": round(components.uptime_seconds, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "pending_conversations": await components.store.count(),
            "services": {
                name: mode.value for name, mode in components.modes.items()
            },
        },
    }


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Pre-built components (tests). Built from settings
                    when omitted.
    """
    components = components or create_app_components()

    app = FastAPI(title="Ledger Bot", version=__version__)
    app.state.components = components
    app.include_router(webhook_router)
    app.include_router(dashboard_router)

    @app.get("/")
    async def root():
        return {"message": "ledger bot up", "version": __version__}

    return app
