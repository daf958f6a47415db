"""Neon tool definitions. Each handler is thin glue over NeonClient."""

from functools import partial
from typing import Any, Dict, List

from neon_gateway.catalog import ToolDefinition
from neon_gateway.neon_client import DEFAULT_DATABASE, DEFAULT_ROLE, NeonClient

# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

PROJECT_ID = {"type": "string", "minLength": 1, "description": "The ID of the project"}
BRANCH_ID = {"type": "string", "minLength": 1, "description": "The ID of the branch"}
DATABASE_NAME = {
    "type": "string",
    "minLength": 1,
    "description": f"Database name (default {DEFAULT_DATABASE})",
}
ROLE_NAME = {"type": "string", "minLength": 1, "description": f"Role name (default {DEFAULT_ROLE})"}


def _object(properties: Dict[str, Any], required=()) -> Dict[str, Any]:
    schema = {"type": "object", "properties": properties, "additionalProperties": False}
    if required:
        schema["required"] = list(required)
    return schema


LIST_PROJECTS_SCHEMA = _object({
    "cursor": {"type": "string", "description": "Pagination cursor from a previous call"},
    "limit": {"type": "integer", "minimum": 1, "maximum": 400, "description": "Maximum projects (default 10)"},
    "search": {"type": "string", "description": "Filter by project name or ID"},
})
CREATE_PROJECT_SCHEMA = _object({
    "name": {"type": "string", "minLength": 1, "description": "Optional name for the project"},
})
PROJECT_SCHEMA = _object({"projectId": PROJECT_ID}, required=["projectId"])
CREATE_BRANCH_SCHEMA = _object(
    {
        "projectId": PROJECT_ID,
        "branchName": {"type": "string", "minLength": 1, "description": "Optional name for the branch"},
        "parentId": {"type": "string", "minLength": 1, "description": "Branch to fork from (default: primary)"},
    },
    required=["projectId"],
)
BRANCH_SCHEMA = _object({"projectId": PROJECT_ID, "branchId": BRANCH_ID}, required=["projectId", "branchId"])
CONNECTION_SCHEMA = _object(
    {
        "projectId": PROJECT_ID,
        "branchId": BRANCH_ID,
        "databaseName": DATABASE_NAME,
        "roleName": ROLE_NAME,
        "pooled": {"type": "boolean", "description": "Use the pooled connection endpoint"},
    },
    required=["projectId"],
)
RUN_SQL_SCHEMA = _object(
    {
        "sql": {"type": "string", "minLength": 1, "description": "The SQL statement to execute"},
        "projectId": PROJECT_ID,
        "branchId": BRANCH_ID,
        "databaseName": DATABASE_NAME,
        "roleName": ROLE_NAME,
    },
    required=["sql", "projectId"],
)
DATABASE_SCHEMA = _object(
    {
        "projectId": PROJECT_ID,
        "branchId": BRANCH_ID,
        "databaseName": DATABASE_NAME,
        "roleName": ROLE_NAME,
    },
    required=["projectId"],
)

LIST_TABLES_SQL = """
SELECT table_schema, table_name, table_type
FROM information_schema.tables
WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
ORDER BY table_schema, table_name
""".strip()

# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def list_projects(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.list_projects(
        cursor=params.get("cursor"),
        limit=params.get("limit", 10),
        search=params.get("search"),
    )


async def create_project(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.create_project(name=params.get("name"))


async def describe_project(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.get_project(params["projectId"])


async def delete_project(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.delete_project(params["projectId"])


async def create_branch(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.create_branch(
        params["projectId"],
        name=params.get("branchName"),
        parent_id=params.get("parentId"),
    )


async def describe_branch(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.get_branch(params["projectId"], params["branchId"])


async def delete_branch(neon: NeonClient, params: Dict[str, Any]) -> Any:
    return await neon.delete_branch(params["projectId"], params["branchId"])


async def _connection_uri(neon: NeonClient, params: Dict[str, Any], pooled: bool = False) -> str:
    return await neon.get_connection_uri(
        params["projectId"],
        branch_id=params.get("branchId"),
        database_name=params.get("databaseName", DEFAULT_DATABASE),
        role_name=params.get("roleName", DEFAULT_ROLE),
        pooled=pooled,
    )


async def get_connection_string(neon: NeonClient, params: Dict[str, Any]) -> Any:
    uri = await _connection_uri(neon, params, pooled=params.get("pooled", False))
    return {"projectId": params["projectId"], "branchId": params.get("branchId"), "uri": uri}


async def run_sql(neon: NeonClient, params: Dict[str, Any]) -> Any:
    uri = await _connection_uri(neon, params)
    return await neon.run_sql(uri, params["sql"])


async def get_database_tables(neon: NeonClient, params: Dict[str, Any]) -> Any:
    uri = await _connection_uri(neon, params)
    result = await neon.run_sql(uri, LIST_TABLES_SQL)
    return result.get("rows", [])


def neon_tools(neon: NeonClient) -> List[ToolDefinition]:
    """The ordered tool list, each definition bound to its handler."""

    def tool(name: str, description: str, schema: Dict[str, Any], handler) -> ToolDefinition:
        return ToolDefinition(name, description, schema, partial(handler, neon))

    return [
        tool("list_projects", "List Neon projects in your account.", LIST_PROJECTS_SCHEMA, list_projects),
        tool("create_project", "Create a new Neon project.", CREATE_PROJECT_SCHEMA, create_project),
        tool("describe_project", "Describe a Neon project.", PROJECT_SCHEMA, describe_project),
        tool("delete_project", "Delete a Neon project.", PROJECT_SCHEMA, delete_project),
        tool(
            "create_branch",
            "Create a branch in a Neon project, with a read-write compute endpoint.",
            CREATE_BRANCH_SCHEMA,
            create_branch,
        ),
        tool("describe_branch", "Describe a branch of a Neon project.", BRANCH_SCHEMA, describe_branch),
        tool("delete_branch", "Delete a branch from a Neon project.", BRANCH_SCHEMA, delete_branch),
        tool(
            "get_connection_string",
            "Get a PostgreSQL connection string for a Neon database.",
            CONNECTION_SCHEMA,
            get_connection_string,
        ),
        tool("run_sql", "Execute a single SQL statement against a Neon database.", RUN_SQL_SCHEMA, run_sql),
        tool(
            "get_database_tables",
            "List the user tables in a Neon database.",
            DATABASE_SCHEMA,
            get_database_tables,
        ),
    ]
