"""Minimal ASGI request/response helpers shared by both bindings."""

import json
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

from neon_gateway.errors import GatewayError

CORS_HEADERS = [
    [b"access-control-allow-origin", b"*"],
]
PREFLIGHT_HEADERS = CORS_HEADERS + [
    [b"access-control-allow-methods", b"GET, POST, OPTIONS"],
    [b"access-control-allow-headers", b"Content-Type, Authorization"],
]
WWW_AUTHENTICATE = [b"www-authenticate", b'Bearer realm="neon-mcp-gateway"']


class ResponseTracker:
    """Wraps ASGI send and remembers whether the response has started."""

    def __init__(self, send) -> None:
        self._send = send
        self.started = False

    async def __call__(self, message: Dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.started = True
        await self._send(message)


def parse_query_string(query_string: bytes) -> Dict[str, str]:
    """Parse query string into a dictionary (last value wins)."""
    if not query_string:
        return {}
    return dict(parse_qsl(query_string.decode("latin-1"), keep_blank_values=True))


async def read_request_body(receive) -> bytes:
    """Read the full request body."""
    body = b""
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        body += message.get("body", b"")
        if not message.get("more_body", False):
            break
    return body


async def send_response(send, status: int, body: bytes, content_type: Optional[bytes] = None,
                        extra_headers: Optional[List[List[bytes]]] = None) -> None:
    headers = list(CORS_HEADERS)
    if content_type is not None:
        headers.append([b"content-type", content_type])
    if extra_headers:
        headers.extend(extra_headers)
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": headers,
    })
    await send({
        "type": "http.response.body",
        "body": body,
    })


async def send_json_response(send, status: int, data: Any, extra_headers=None) -> None:
    """Send a JSON response."""
    body = json.dumps(data, default=str).encode("utf-8")
    await send_response(send, status, body, b"application/json", extra_headers)


async def send_text_response(send, status: int, text: str) -> None:
    await send_response(send, status, text.encode("utf-8"), b"text/plain; charset=utf-8")


async def send_preflight_response(send) -> None:
    await send({
        "type": "http.response.start",
        "status": 204,
        "headers": PREFLIGHT_HEADERS,
    })
    await send({"type": "http.response.body", "body": b""})


async def send_error_response(send, error: GatewayError) -> None:
    """Render a GatewayError; 401s also carry a WWW-Authenticate challenge."""
    extra = [WWW_AUTHENTICATE] if error.status == 401 else None
    await send_json_response(send, error.status, error.to_dict(), extra)
