import asyncio
import re

import httpx
import pytest

from neon_gateway.app import Gateway
from neon_gateway.catalog import Catalog, ResourceDefinition, ToolDefinition
from neon_gateway.config import Settings

TOKEN = "secret-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}

PROJECTS = {"projects": [{"id": "p-1", "name": "alpha"}, {"id": "p-2", "name": "beta"}]}

RUN_SQL_SCHEMA = {
    "type": "object",
    "properties": {"sql": {"type": "string"}},
    "required": ["sql"],
}


async def list_projects(params):
    return PROJECTS


async def run_sql(params):
    return {"rows": [{"sql": params["sql"]}]}


async def explode(params):
    raise RuntimeError("upstream exploded")


async def read_notes(uri):
    return "# notes"


def make_catalog(*extra_tools):
    tools = [
        ToolDefinition("list_projects", "List projects", {"type": "object", "properties": {}}, list_projects),
        ToolDefinition("run_sql", "Run SQL", RUN_SQL_SCHEMA, run_sql),
        ToolDefinition("explode", "Always fails", {"type": "object"}, explode),
    ]
    tools.extend(extra_tools)
    resources = [ResourceDefinition("notes", "neon://notes", "Notes", "text/markdown", read_notes)]
    return Catalog(tools, resources)


@pytest.fixture
def settings():
    return Settings(auth_token=TOKEN)


@pytest.fixture
def gateway(settings):
    return Gateway(settings, make_catalog())


@pytest.fixture
async def client(gateway):
    transport = httpx.ASGITransport(app=gateway)
    async with httpx.AsyncClient(transport=transport, base_url="http://gateway.test") as c:
        yield c


async def wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class StreamConnection:
    """Drives one GET /stream request against the raw ASGI app."""

    def __init__(self, app, token=TOKEN):
        self.app = app
        self.token = token
        self.sent = []
        self._disconnect = asyncio.Event()
        self.task = None

    def scope(self):
        headers = [(b"host", b"gateway.test")]
        if self.token is not None:
            headers.append((b"authorization", f"Bearer {self.token}".encode()))
        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/stream",
            "raw_path": b"/stream",
            "root_path": "",
            "query_string": b"",
            "headers": headers,
            "client": ("127.0.0.1", 50000),
            "server": ("gateway.test", 80),
        }

    async def receive(self):
        await self._disconnect.wait()
        return {"type": "http.disconnect"}

    async def send(self, message):
        self.sent.append(message)

    def open(self):
        self.task = asyncio.create_task(self.app(self.scope(), self.receive, self.send))
        return self

    @property
    def status(self):
        for message in self.sent:
            if message["type"] == "http.response.start":
                return message["status"]
        return None

    @property
    def headers(self):
        for message in self.sent:
            if message["type"] == "http.response.start":
                return dict(message["headers"])
        return {}

    @property
    def text(self):
        return b"".join(
            message.get("body", b"") for message in self.sent if message["type"] == "http.response.body"
        ).decode("utf-8")

    @property
    def session_id(self):
        match = re.search(r"sessionId=([0-9a-f]{32})", self.text)
        return match.group(1) if match else None

    async def wait_for_session(self):
        await wait_until(lambda: self.session_id is not None)
        return self.session_id

    async def close(self):
        self._disconnect.set()
        await asyncio.wait_for(self.task, timeout=5)
