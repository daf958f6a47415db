"""Tests for the Neon API client and the tools built on it."""

import json

import httpx
import pytest

from neon_gateway.app import create_app
from neon_gateway.catalog import Catalog
from neon_gateway.config import Settings
from neon_gateway.neon_client import NeonApiError, NeonClient
from neon_gateway.pipeline import InvocationPipeline
from neon_gateway.resources import GUIDE_URI, PROJECTS_URI, neon_resources
from neon_gateway.tools import LIST_TABLES_SQL, neon_tools
from tests.conftest import AUTH, TOKEN

CONNECTION_URI = "postgresql://neondb_owner:pw@ep-cool-1.eu-central-1.aws.neon.tech/neondb"


class FakeNeon:
    """Answers the handful of Neon endpoints the tools call, recording every request."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.url.host == "ep-cool-1.eu-central-1.aws.neon.tech":
            query = json.loads(request.content)["query"]
            return httpx.Response(200, json={"rows": [{"table_name": "users"}], "query": query})
        if path == "/api/v2/projects" and request.method == "GET":
            return httpx.Response(200, json={"projects": [{"id": "p-1"}]})
        if path == "/api/v2/projects" and request.method == "POST":
            return httpx.Response(201, json={"project": json.loads(request.content)["project"]})
        if path.endswith("/connection_uri"):
            return httpx.Response(200, json={"uri": CONNECTION_URI})
        if path == "/api/v2/projects/p-1/branches":
            return httpx.Response(201, json=json.loads(request.content))
        if path == "/api/v2/projects/missing":
            return httpx.Response(404, json={"code": "", "message": "project not found"})
        return httpx.Response(500, text="boom")


@pytest.fixture
def fake():
    return FakeNeon()


@pytest.fixture
async def neon(fake):
    client = NeonClient("neon-key", base_url="https://neon.test/api/v2", transport=httpx.MockTransport(fake))
    yield client
    await client.aclose()


@pytest.fixture
def pipeline(neon):
    return InvocationPipeline(Catalog(neon_tools(neon), neon_resources(neon)))


class TestNeonClient:
    async def test_requests_carry_the_api_key(self, neon, fake) -> None:
        assert await neon.list_projects(limit=5) == {"projects": [{"id": "p-1"}]}

        [request] = fake.requests
        assert request.headers["authorization"] == "Bearer neon-key"
        assert request.url.params["limit"] == "5"
        assert "cursor" not in request.url.params

    async def test_error_message_is_passed_through(self, neon) -> None:
        with pytest.raises(NeonApiError) as excinfo:
            await neon.get_project("missing")

        assert excinfo.value.status_code == 404
        assert str(excinfo.value) == "Neon API error 404: project not found"

    async def test_non_json_error(self, neon) -> None:
        with pytest.raises(NeonApiError, match="boom"):
            await neon.delete_branch("p-9", "b-9")

    async def test_run_sql_uses_the_connection_string_only(self, neon, fake) -> None:
        result = await neon.run_sql(CONNECTION_URI, "SELECT 1")

        assert result["query"] == "SELECT 1"
        [request] = fake.requests
        assert str(request.url) == "https://ep-cool-1.eu-central-1.aws.neon.tech/sql"
        assert request.headers["neon-connection-string"] == CONNECTION_URI
        assert "authorization" not in request.headers

    async def test_create_branch_adds_a_read_write_endpoint(self, neon) -> None:
        body = await neon.create_branch("p-1", name="dev")

        assert body == {"branch": {"name": "dev"}, "endpoints": [{"type": "read_write"}]}


class TestNeonTools:
    async def test_catalog_builds(self, neon) -> None:
        names = [tool.name for tool in neon_tools(neon)]

        assert names[0] == "list_projects"
        assert "run_sql" in names
        assert len(names) == len(set(names))

    async def test_list_projects_default_limit(self, pipeline, fake) -> None:
        result = await pipeline.invoke("list_projects", {})

        assert result.ok
        assert fake.requests[0].url.params["limit"] == "10"

    async def test_run_sql(self, pipeline, fake) -> None:
        result = await pipeline.invoke("run_sql", {"projectId": "p-1", "sql": "SELECT now()"})

        assert result.value["query"] == "SELECT now()"
        lookup = fake.requests[0].url.params
        assert lookup["database_name"] == "neondb"
        assert lookup["role_name"] == "neondb_owner"

    async def test_run_sql_requires_project(self, pipeline, fake) -> None:
        result = await pipeline.invoke("run_sql", {"sql": "SELECT 1"})

        assert result.error.details == [{"path": "projectId", "message": "'projectId' is a required property"}]
        assert fake.requests == []

    async def test_get_database_tables(self, pipeline, fake) -> None:
        result = await pipeline.invoke("get_database_tables", {"projectId": "p-1", "branchId": "br-1"})

        assert result.value == [{"table_name": "users"}]
        assert json.loads(fake.requests[1].content)["query"] == LIST_TABLES_SQL

    async def test_upstream_error_becomes_handler_error(self, pipeline) -> None:
        result = await pipeline.invoke("describe_project", {"projectId": "missing"})

        assert result.status == 500
        assert result.error.message == "Neon API error 404: project not found"

    async def test_unexpected_argument_is_rejected(self, pipeline) -> None:
        result = await pipeline.invoke("describe_project", {"projectId": "p-1", "extra": True})
        assert result.status == 400


class TestNeonResources:
    async def test_guide_and_projects(self, neon) -> None:
        resources = {r.uri: r for r in neon_resources(neon)}

        assert "list_projects" in await resources[GUIDE_URI].handler(GUIDE_URI)
        assert await resources[PROJECTS_URI].handler(PROJECTS_URI) == {"projects": [{"id": "p-1"}]}


async def test_create_app_end_to_end(neon) -> None:
    gateway = create_app(Settings(auth_token=TOKEN), neon=neon)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=gateway), base_url="http://t") as client:
        response = await client.post("/api/tools/create_project/execute", headers=AUTH, json={"name": "demo"})

    assert response.status_code == 200
    assert response.json() == {"result": {"project": {"name": "demo"}}}
