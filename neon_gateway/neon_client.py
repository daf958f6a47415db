"""Async client for the Neon management API and the serverless SQL endpoint."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from neon_gateway import SERVER_NAME, __version__
from neon_gateway.config import DEFAULT_NEON_API_BASE_URL, DEFAULT_NEON_API_TIMEOUT

logger = logging.getLogger("neon-gateway.neon")

DEFAULT_DATABASE = "neondb"
DEFAULT_ROLE = "neondb_owner"


class NeonApiError(Exception):
    """Non-2xx response from Neon. The message is passed to callers unchanged."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Neon API error {status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text.strip() or response.reason_phrase


def _drop_none(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


class NeonClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_NEON_API_BASE_URL,
        timeout: float = DEFAULT_NEON_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "User-Agent": f"{SERVER_NAME}/{__version__}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("Neon API %s %s failed: %d %s", method, path, response.status_code, message)
            raise NeonApiError(response.status_code, message)
        if not response.content:
            return None
        return response.json()

    # ---------------------------------------------------------------------------
    # Projects
    # ---------------------------------------------------------------------------

    async def list_projects(self, cursor: Optional[str] = None, limit: Optional[int] = None,
                            search: Optional[str] = None) -> Dict[str, Any]:
        params = _drop_none({"cursor": cursor, "limit": limit, "search": search})
        return await self._request("GET", "/projects", params=params)

    async def create_project(self, name: Optional[str] = None) -> Dict[str, Any]:
        project = _drop_none({"name": name})
        return await self._request("POST", "/projects", json={"project": project})

    async def get_project(self, project_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}")

    async def delete_project(self, project_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/projects/{project_id}")

    # ---------------------------------------------------------------------------
    # Branches
    # ---------------------------------------------------------------------------

    async def create_branch(self, project_id: str, name: Optional[str] = None,
                            parent_id: Optional[str] = None) -> Dict[str, Any]:
        body = {
            "branch": _drop_none({"name": name, "parent_id": parent_id}),
            "endpoints": [{"type": "read_write"}],
        }
        return await self._request("POST", f"/projects/{project_id}/branches", json=body)

    async def get_branch(self, project_id: str, branch_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}/branches/{branch_id}")

    async def delete_branch(self, project_id: str, branch_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/projects/{project_id}/branches/{branch_id}")

    # ---------------------------------------------------------------------------
    # SQL
    # ---------------------------------------------------------------------------

    async def get_connection_uri(self, project_id: str, branch_id: Optional[str] = None,
                                 database_name: str = DEFAULT_DATABASE,
                                 role_name: str = DEFAULT_ROLE, pooled: bool = False) -> str:
        params = _drop_none({
            "branch_id": branch_id,
            "database_name": database_name,
            "role_name": role_name,
            "pooled": "true" if pooled else None,
        })
        payload = await self._request("GET", f"/projects/{project_id}/connection_uri", params=params)
        return payload["uri"]

    async def run_sql(self, connection_uri: str, sql: str,
                      params: Optional[List[Any]] = None) -> Dict[str, Any]:
        """Run one statement through the serverless SQL-over-HTTP endpoint."""
        host = urlparse(connection_uri).hostname
        if not host:
            raise ValueError("Connection string has no host")
        request = self._client.build_request(
            "POST",
            f"https://{host}/sql",
            json={"query": sql, "params": params or []},
            headers={"Neon-Connection-String": connection_uri},
        )
        # the database host authenticates with the connection string only
        del request.headers["Authorization"]
        response = await self._client.send(request)
        if response.status_code >= 400:
            raise NeonApiError(response.status_code, _error_message(response))
        return response.json()
