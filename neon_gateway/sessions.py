"""
Streaming sessions: the session registry and the SSE transport bound to it.

A GET on the stream path opens an SSE response whose first event tells the
client where to POST follow-up messages (``?sessionId=<id>``). Each POST is
routed through the registry to the live session and forwarded, in arrival
order, to the MCP server running over that session's memory streams.
"""

import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import anyio
import mcp.types as types
from mcp.server import Server
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse

from neon_gateway.errors import InvalidMessage, MissingSessionId, UnknownSession
from neon_gateway.responses import read_request_body

logger = logging.getLogger("neon-gateway.sessions")

SESSION_ID_PARAM = "sessionId"
SSE_HEADERS = {"Access-Control-Allow-Origin": "*"}


class SessionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class StreamSession:
    """One live SSE connection and the memory streams the MCP server runs over."""

    def __init__(self, session_id: str, registry: "SessionRegistry") -> None:
        self.session_id = session_id
        self.created_at = time.time()
        self.last_activity = self.created_at
        self.message_count = 0
        self.state = SessionState.CREATED
        self._registry = registry
        self._cancel_scope: Optional[anyio.CancelScope] = None

        # client -> server
        self._read_stream_writer, self.read_stream = anyio.create_memory_object_stream(0)
        # server -> client
        self.write_stream, self.outgoing = anyio.create_memory_object_stream(0)

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def bind(self, cancel_scope: anyio.CancelScope) -> None:
        """Attach the scope whose cancellation abandons this session's pending work."""
        self._cancel_scope = cancel_scope
        if self.state is SessionState.CLOSED:
            cancel_scope.cancel()

    def activate(self) -> None:
        if self.state is SessionState.CREATED:
            self.state = SessionState.ACTIVE
            logger.info("Session active: %s (total active: %d)", self.short_id, len(self._registry))

    async def forward(self, message: SessionMessage) -> None:
        """Hand one client frame to the MCP server. Raises UnknownSession once closed."""
        if not self.is_active:
            raise UnknownSession()
        try:
            await self._read_stream_writer.send(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.warning("Session %s closed while delivering a message", self.short_id)
            self.close()
            raise UnknownSession() from None
        self.message_count += 1
        self.last_activity = time.time()

    def close(self) -> bool:
        """Tear the session down. Returns False if it was already closed."""
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        self._registry.remove(self.session_id)
        self._read_stream_writer.close()
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()
        logger.info(
            "Session closed: %s (duration: %.1fs, messages: %d)",
            self.short_id,
            time.time() - self.created_at,
            self.message_count,
        )
        return True

    def info(self) -> Dict[str, Any]:
        now = time.time()
        return {
            "id": self.short_id + "...",
            "state": self.state.value,
            "age_seconds": round(now - self.created_at, 3),
            "last_activity_seconds_ago": round(now - self.last_activity, 3),
            "messages": self.message_count,
        }


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class SessionRegistry:
    """Owns every live StreamSession, keyed by session id.

    open() generates the id and inserts the session without a suspension
    point in between, so ids cannot collide. Only active sessions accept
    messages.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, StreamSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def open(self) -> StreamSession:
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        session = StreamSession(session_id, self)
        self._sessions[session_id] = session
        logger.info("Session registered: %s (total: %d)", session.short_id, len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[StreamSession]:
        return self._sessions.get(session_id)

    def get_active(self, session_id: Optional[str]) -> StreamSession:
        """Look up a session able to accept messages."""
        if not session_id:
            raise MissingSessionId()
        session = self._sessions.get(session_id)
        if session is None or not session.is_active:
            logger.warning("Received message for unknown/disconnected session: %s", session_id[:8])
            raise UnknownSession()
        return session

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def snapshot(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [session.info() for session in list(self._sessions.values())[:limit]]

    def close_all(self) -> int:
        sessions = list(self._sessions.values())
        for session in sessions:
            session.close()
        return len(sessions)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class StreamingEndpoint:
    """SSE connection handling plus out-of-band message delivery."""

    def __init__(self, registry: SessionRegistry, server: Server, message_path: str) -> None:
        self.registry = registry
        self.server = server
        self.message_path = message_path

    def endpoint_uri(self, scope: dict, session_id: str) -> str:
        root_path = scope.get("root_path", "").rstrip("/")
        return f"{quote(root_path + self.message_path)}?{SESSION_ID_PARAM}={session_id}"

    async def connect(self, scope: dict, receive, send) -> None:
        """Serve one SSE connection until the client goes away."""
        session = self.registry.open()
        endpoint = self.endpoint_uri(scope, session.session_id)
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream(0)

        async def sse_writer():
            async with sse_stream_writer, session.outgoing:
                await sse_stream_writer.send({"event": "endpoint", "data": endpoint})
                session.activate()
                async for session_message in session.outgoing:
                    await sse_stream_writer.send({
                        "event": "message",
                        "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                    })

        async def run_response():
            try:
                response = EventSourceResponse(
                    content=sse_stream_reader,
                    data_sender_callable=sse_writer,
                    headers=SSE_HEADERS,
                )
                await response(scope, receive, send)
                logger.info("Client disconnected for session %s", session.short_id)
            except Exception as e:
                logger.warning("Write failure on session %s: %s", session.short_id, e)
            finally:
                session.close()

        try:
            async with anyio.create_task_group() as tg:
                session.bind(tg.cancel_scope)
                tg.start_soon(run_response)
                await self.server.run(
                    session.read_stream,
                    session.write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            session.close()

    async def deliver(self, session_id: Optional[str], receive) -> StreamSession:
        """Route one POSTed JSON-RPC frame to its session."""
        session = self.registry.get_active(session_id)
        body = await read_request_body(receive)
        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError:
            logger.warning("Could not parse message for session %s", session.short_id)
            raise InvalidMessage() from None
        await session.forward(SessionMessage(message))
        return session
