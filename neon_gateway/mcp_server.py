"""MCP protocol handlers that expose the catalog over a streaming session."""

import json
import logging
from typing import Any, List

import mcp.types as types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents

from neon_gateway import SERVER_NAME
from neon_gateway.catalog import Catalog
from neon_gateway.pipeline import InvocationPipeline

logger = logging.getLogger("neon-gateway.mcp")


def to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def build_mcp_server(catalog: Catalog, pipeline: InvocationPipeline, version: str) -> Server:
    """Create the MCP server whose handlers delegate to the catalog and pipeline."""
    mcp = Server(SERVER_NAME, version=version)

    tools = [
        types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
        for tool in catalog.tools
    ]
    resources = [
        types.Resource(
            name=resource.name,
            uri=resource.uri,
            description=resource.description,
            mimeType=resource.mime_type,
        )
        for resource in catalog.resources
    ]

    @mcp.list_tools()
    async def list_tools() -> List[types.Tool]:
        return tools

    # The pipeline validates input itself so both bindings report the same violations.
    @mcp.call_tool(validate_input=False)
    async def call_tool(name: str, args: Any):
        result = await pipeline.invoke(name, args)
        if not result.ok:
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=to_text(result.error.to_dict()))],
                isError=True,
            )
        return [types.TextContent(type="text", text=to_text(result.value))]

    @mcp.list_resources()
    async def list_resources() -> List[types.Resource]:
        return resources

    @mcp.read_resource()
    async def read_resource(uri):
        resource = catalog.resource_for_uri(str(uri))
        if resource is None:
            raise ValueError(f"Unknown resource: {uri}")
        content = await resource.handler(str(uri))
        if not isinstance(content, (str, bytes)):
            content = to_text(content)
        return [ReadResourceContents(content=content, mime_type=resource.mime_type)]

    return mcp
