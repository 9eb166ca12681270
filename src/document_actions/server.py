"""Action hub HTTP server.

Endpoints:
- ``GET /``: integration list
- ``GET /health``: liveness probe
- ``POST /actions/{name}/form``: login or destination form
- ``POST /actions/{name}/execute``: run an upload
- ``GET /actions/{name}/oauth``: redirect to the vendor consent page
- ``GET /actions/{name}/oauth_redirect``: vendor callback finishing the handshake
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional

import httpx
import structlog
from aiohttp import web
from pydantic import ValidationError as PydanticValidationError

from .actions.base import Action
from .actions.registry import build_actions
from .config import Settings
from .oauth.seal import FernetStateSeal
from .schemas.action import ActionRequest
from .utils.errors import (
    AuthenticationError,
    CallbackError,
    IntegrationError,
    RetriableError,
    SealError,
    ValidationError,
)

ACTIONS_KEY = web.AppKey("actions", dict)
SETTINGS_KEY = web.AppKey("settings", Settings)
HTTP_CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


def setup_logging(settings: Settings) -> structlog.BoundLogger:
    """Configure structlog over the stdlib logging backend."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.logging.level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.logging.format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger().bind(
        service=settings.service_name,
        version=settings.service_version,
    )


def _error_response(error: IntegrationError, status: int) -> web.Response:
    return web.json_response({"error": error.to_dict()}, status=status)


def _status_for(error: IntegrationError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, CallbackError):
        return 502
    if isinstance(error, RetriableError):
        return 503
    return 500


def _action(request: web.Request) -> Action:
    name = request.match_info["name"]
    action = request.app[ACTIONS_KEY].get(name)
    if action is None:
        raise web.HTTPNotFound(text=f"No action named {name}")
    return action


async def _action_request(request: web.Request) -> ActionRequest:
    try:
        payload = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="Request body must be JSON")
    try:
        return ActionRequest.model_validate(payload or {})
    except PydanticValidationError as e:
        raise web.HTTPBadRequest(text=f"Invalid action request: {e.error_count()} errors")


async def list_handler(request: web.Request) -> web.Response:
    """Handle / (integration list)."""
    settings = request.app[SETTINGS_KEY]
    return web.json_response(
        {
            "label": settings.hub.label,
            "integrations": [a.to_metadata() for a in request.app[ACTIONS_KEY].values()],
        }
    )


async def health_handler(request: web.Request) -> web.Response:
    """Handle /health (liveness probe)."""
    return web.json_response(
        {
            "status": "healthy",
            "actions": sorted(request.app[ACTIONS_KEY]),
        }
    )


async def form_handler(request: web.Request) -> web.Response:
    action = _action(request)
    action_request = await _action_request(request)
    try:
        form = await action.form(action_request)
    except IntegrationError as e:
        return _error_response(e, _status_for(e))
    return web.json_response(form.model_dump(mode="json", exclude_none=True))


async def execute_handler(request: web.Request) -> web.Response:
    action = _action(request)
    action_request = await _action_request(request)
    response = await action.execute(action_request)
    return web.json_response(response.model_dump(mode="json", exclude_none=True))


async def oauth_handler(request: web.Request) -> web.Response:
    """Send the browser to the vendor consent page."""
    action = _action(request)
    state = request.query.get("state")
    if not state:
        raise web.HTTPBadRequest(text="Missing state parameter")
    url = action.handshake.authorization_url(action.handshake.redirect_uri, state)
    raise web.HTTPFound(url)


async def oauth_redirect_handler(request: web.Request) -> web.Response:
    """Finish the handshake with the code the vendor sent back."""
    action = _action(request)
    code = request.query.get("code")
    state = request.query.get("state")
    if not code or not state:
        raise web.HTTPBadRequest(text="Missing code or state parameter")
    try:
        await action.handshake.complete(code, state, action.handshake.redirect_uri)
    except SealError:
        return web.Response(status=500, text="Login failed: encryption is not correctly configured.")
    except IntegrationError as e:
        return web.Response(status=_status_for(e), text=f"Login failed: {e.message}")
    return web.Response(text="Login successful. You can close this window.")


def create_app(
    settings: Settings,
    actions: Optional[Dict[str, Action]] = None,
    logger: Optional[structlog.BoundLogger] = None,
) -> web.Application:
    """Build the hub application.

    Args:
        settings: Process settings, read once at start
        actions: Pre-built actions; built from ``settings`` when omitted
        logger: Structured logger instance
    """
    logger = logger or structlog.get_logger()
    app = web.Application()
    app[SETTINGS_KEY] = settings

    if actions is None:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.hub.http_timeout_seconds),
        )
        app[HTTP_CLIENT_KEY] = http_client
        actions = build_actions(
            settings,
            FernetStateSeal(settings.hub.cipher_master),
            http_client=http_client,
            logger=logger,
        )

        async def close_http_client(app: web.Application) -> None:
            await app[HTTP_CLIENT_KEY].aclose()

        app.on_cleanup.append(close_http_client)

    app[ACTIONS_KEY] = actions

    app.router.add_get("/", list_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_post("/actions/{name}/form", form_handler)
    app.router.add_post("/actions/{name}/execute", execute_handler)
    app.router.add_get("/actions/{name}/oauth", oauth_handler)
    app.router.add_get("/actions/{name}/oauth_redirect", oauth_redirect_handler)
    return app
