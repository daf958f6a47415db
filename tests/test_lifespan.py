"""Tests for ASGI lifespan handling."""

import asyncio

from neon_gateway.app import Gateway
from neon_gateway.sessions import SessionState
from tests.conftest import make_catalog


class FakeUpstream:
    def __init__(self):
        self.closed = False

    async def aclose(self):
        self.closed = True


async def run_lifespan(app):
    inbox = asyncio.Queue()
    sent = []

    async def send(message):
        sent.append(message["type"])

    task = asyncio.create_task(app({"type": "lifespan"}, inbox.get, send))
    await inbox.put({"type": "lifespan.startup"})
    await inbox.put({"type": "lifespan.shutdown"})
    await asyncio.wait_for(task, timeout=5)
    return sent


async def test_shutdown_closes_sessions_and_upstream(settings) -> None:
    upstream = FakeUpstream()
    gateway = Gateway(settings, make_catalog(), upstream=upstream)
    session = gateway.registry.open()

    sent = await run_lifespan(gateway)

    assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
    assert session.state is SessionState.CLOSED
    assert len(gateway.registry) == 0
    assert upstream.closed
