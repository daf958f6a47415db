"""Readable resources exposed next to the tools."""

from functools import partial
from typing import Any, List

from neon_gateway.catalog import ResourceDefinition
from neon_gateway.neon_client import NeonClient

GUIDE_URI = "neon://guides/getting-started"
PROJECTS_URI = "neon://projects"

GETTING_STARTED = """
# Neon MCP Gateway

## Workflow
1. `list_projects` to find a project, or `create_project` for a new one.
2. `create_branch` before schema changes; test them on the branch.
3. `run_sql` / `get_database_tables` against the branch (`branchId`).
4. `delete_branch` once the change has been applied to the primary branch.

## Notes
- Every tool takes a single JSON object; see `/api/tools` for the schemas.
- `run_sql` executes exactly one statement per call.
- Upstream API errors are returned as-is; nothing is retried.
""".strip()


async def read_guide(uri: str) -> str:
    return GETTING_STARTED


async def read_projects(neon: NeonClient, uri: str) -> Any:
    return await neon.list_projects()


def neon_resources(neon: NeonClient) -> List[ResourceDefinition]:
    return [
        ResourceDefinition(
            name="neon-guide",
            uri=GUIDE_URI,
            description="How to use the Neon tools exposed by this gateway.",
            mime_type="text/markdown",
            handler=read_guide,
        ),
        ResourceDefinition(
            name="neon-projects",
            uri=PROJECTS_URI,
            description="Projects visible to the configured Neon API key.",
            mime_type="application/json",
            handler=partial(read_projects, neon),
        ),
    ]
