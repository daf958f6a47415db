"""
Gateway ASGI application - manual routing over both bindings.

    GET  /                            liveness banner (public)
    GET  /api/status                  gateway identity
    GET  /api/tools                   tool catalog            (sync binding)
    GET  /api/resources               resource catalog        (sync binding)
    POST /api/tools/{name}/execute    one-shot invocation     (sync binding)
    GET  /stream                      open an SSE session     (stream binding)
    POST /stream-post?sessionId=...   out-of-band message     (stream binding)

Every path except the banner and CORS preflight requires the bearer token.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from neon_gateway import SERVER_NAME, __version__
from neon_gateway.auth import AuthGate
from neon_gateway.catalog import Catalog
from neon_gateway.config import Settings
from neon_gateway.errors import (
    GatewayError,
    InvalidInput,
    MessageDeliveryError,
    MethodNotAllowed,
    RouteNotFound,
    SetupError,
    UnknownTool,
)
from neon_gateway.mcp_server import build_mcp_server
from neon_gateway.neon_client import NeonClient
from neon_gateway.pipeline import InvocationPipeline
from neon_gateway.resources import neon_resources
from neon_gateway.responses import (
    ResponseTracker,
    parse_query_string,
    read_request_body,
    send_error_response,
    send_json_response,
    send_preflight_response,
    send_text_response,
)
from neon_gateway.sessions import SESSION_ID_PARAM, SessionRegistry, StreamingEndpoint
from neon_gateway.tools import neon_tools

logger = logging.getLogger("neon-gateway")

STREAM_PATH = "/stream"
STREAM_POST_PATH = "/stream-post"
EXECUTE_PATH = re.compile(r"^/api/tools/(?P<name>[^/]+)/execute$")

ALLOWED_METHODS = {
    "/": "GET",
    "/api/status": "GET",
    "/api/tools": "GET",
    "/api/resources": "GET",
    STREAM_PATH: "GET",
    STREAM_POST_PATH: "POST",
}


class Gateway:
    """The ASGI callable. Holds the catalog, pipeline and session registry."""

    def __init__(self, settings: Settings, catalog: Catalog, upstream: Optional[Any] = None) -> None:
        self.settings = settings
        self.catalog = catalog
        self.upstream = upstream
        self.auth = AuthGate(settings.auth_token)
        self.pipeline = InvocationPipeline(catalog)
        self.registry = SessionRegistry()
        self.mcp = build_mcp_server(catalog, self.pipeline, __version__)
        self.streaming = StreamingEndpoint(self.registry, self.mcp, STREAM_POST_PATH)

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
        elif scope["type"] == "http":
            tracked = ResponseTracker(send)
            try:
                await self._handle_http(scope, receive, tracked)
            except GatewayError as e:
                if tracked.started:
                    logger.warning("%s after response started on %s: %s", e.kind, scope["path"], e.message)
                    return
                await send_error_response(tracked, e)
            except Exception:
                logger.exception("Unhandled error on %s %s", scope["method"], scope["path"])
                if not tracked.started:
                    await send_json_response(tracked, 500, {
                        "error": "InternalError",
                        "message": "Internal server error",
                        "status": 500,
                    })

    async def _lifespan(self, receive, send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                logger.info(
                    "%s %s starting (tools: %d, bindings: %s)",
                    SERVER_NAME,
                    __version__,
                    len(self.catalog.tools),
                    ",".join(self.settings.bindings),
                )
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                closed = self.registry.close_all()
                logger.info("%s stopping - closed %d sessions", SERVER_NAME, closed)
                if self.upstream is not None:
                    await self.upstream.aclose()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # ---------------------------------------------------------------------------
    # Routing
    # ---------------------------------------------------------------------------

    async def _handle_http(self, scope, receive, send) -> None:
        path = scope["path"]
        method = scope["method"]

        if method == "OPTIONS":
            await send_preflight_response(send)
            return

        if path == "/" and method == "GET":
            await send_text_response(send, 200, f"{SERVER_NAME} {__version__} is running")
            return

        self.auth.check(scope)

        execute = EXECUTE_PATH.match(path)
        sync_path = path.startswith("/api/") and path != "/api/status"
        stream_path = path in (STREAM_PATH, STREAM_POST_PATH)
        if (sync_path and not self.settings.sync_enabled) or (stream_path and not self.settings.streaming_enabled):
            raise RouteNotFound()

        if execute is not None:
            if method != "POST":
                raise MethodNotAllowed()
            await self._execute(execute.group("name"), receive, send)
            return

        expected = ALLOWED_METHODS.get(path)
        if expected is None:
            raise RouteNotFound()
        if method != expected:
            raise MethodNotAllowed()

        if path == "/api/status":
            await send_json_response(send, 200, self.status())
        elif path == "/api/tools":
            await send_json_response(send, 200, self.catalog.describe_tools())
        elif path == "/api/resources":
            await send_json_response(send, 200, self.catalog.describe_resources())
        elif path == STREAM_PATH:
            await self._open_stream(scope, receive, send)
        elif path == STREAM_POST_PATH:
            await self._post_message(scope, receive, send)
        else:
            raise RouteNotFound()

    def status(self) -> dict:
        return {
            "name": SERVER_NAME,
            "version": __version__,
            "time": datetime.now(timezone.utc).isoformat(),
            "bindings": list(self.settings.bindings),
            "tools": len(self.catalog.tools),
            "resources": len(self.catalog.resources),
            "active_sessions": len(self.registry),
            "sessions": self.registry.snapshot(),
        }

    # ---------------------------------------------------------------------------
    # Synchronous binding
    # ---------------------------------------------------------------------------

    async def _execute(self, name: str, receive, send) -> None:
        if self.catalog.tool(name) is None:
            raise UnknownTool(f"Unknown tool: {name}")

        body = await read_request_body(receive)
        payload: Any = {}
        if body.strip():
            try:
                payload = json.loads(body)
            except json.JSONDecodeError as e:
                raise InvalidInput(
                    "Request body is not valid JSON",
                    details=[{"path": "", "message": str(e)}],
                ) from None

        result = await self.pipeline.invoke(name, payload)
        await send_json_response(send, result.status, result.to_dict())

    # ---------------------------------------------------------------------------
    # Streaming binding
    # ---------------------------------------------------------------------------

    async def _open_stream(self, scope, receive, send: ResponseTracker) -> None:
        logger.info("Client requesting SSE connection")
        try:
            await self.streaming.connect(scope, receive, send)
        except Exception as e:
            if send.started:
                raise
            logger.exception("Error setting up SSE connection")
            raise SetupError() from e

    async def _post_message(self, scope, receive, send) -> None:
        query_params = parse_query_string(scope.get("query_string", b""))
        session_id = query_params.get(SESSION_ID_PARAM)
        try:
            session = await self.streaming.deliver(session_id, receive)
        except GatewayError:
            raise
        except Exception as e:
            logger.exception("Error handling POST message for session %s", (session_id or "")[:8])
            raise MessageDeliveryError() from e
        logger.debug("Handled POST message for session %s", session.short_id)
        await send_text_response(send, 202, "Accepted")


def create_app(settings: Settings, neon: Optional[NeonClient] = None) -> Gateway:
    """Wire the Neon catalog into a Gateway. Raises CatalogError on a bad catalog."""
    if neon is None:
        neon = NeonClient(
            settings.neon_api_key,
            base_url=settings.neon_api_base_url,
            timeout=settings.neon_api_timeout,
        )
    catalog = Catalog(neon_tools(neon), neon_resources(neon))
    return Gateway(settings, catalog, upstream=neon)
