"""Immutable registry of the tools and resources the gateway exposes."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from neon_gateway.errors import CatalogError

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]
ResourceHandler = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class ResourceDefinition:
    name: str
    uri: str
    description: str
    mime_type: str
    handler: ResourceHandler

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "uri": self.uri,
            "description": self.description,
            "mimeType": self.mime_type,
        }


def _normalize_uri(uri: str) -> str:
    return str(uri).rstrip("/")


class Catalog:
    """Tool and resource definitions, fixed at construction.

    Construction fails with CatalogError if a tool has no callable handler
    or if two tools (or two resources) share a name. Lookups never mutate.
    """

    def __init__(
        self,
        tools: Iterable[ToolDefinition],
        resources: Iterable[ResourceDefinition] = (),
    ) -> None:
        self._tools: Tuple[ToolDefinition, ...] = tuple(tools)
        self._resources: Tuple[ResourceDefinition, ...] = tuple(resources)
        self._tools_by_name: Dict[str, ToolDefinition] = {}
        self._resources_by_name: Dict[str, ResourceDefinition] = {}
        self._resources_by_uri: Dict[str, ResourceDefinition] = {}

        for tool in self._tools:
            if not callable(tool.handler):
                raise CatalogError(f"Handler for tool {tool.name} not found")
            if tool.name in self._tools_by_name:
                raise CatalogError(f"Duplicate tool name: {tool.name}")
            self._tools_by_name[tool.name] = tool

        for resource in self._resources:
            if not callable(resource.handler):
                raise CatalogError(f"Handler for resource {resource.name} not found")
            if resource.name in self._resources_by_name:
                raise CatalogError(f"Duplicate resource name: {resource.name}")
            uri = _normalize_uri(resource.uri)
            if uri in self._resources_by_uri:
                raise CatalogError(f"Duplicate resource uri: {resource.uri}")
            self._resources_by_name[resource.name] = resource
            self._resources_by_uri[uri] = resource

    @property
    def tools(self) -> Tuple[ToolDefinition, ...]:
        return self._tools

    @property
    def resources(self) -> Tuple[ResourceDefinition, ...]:
        return self._resources

    def tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools_by_name.get(name)

    def resource(self, name: str) -> Optional[ResourceDefinition]:
        return self._resources_by_name.get(name)

    def resource_for_uri(self, uri: str) -> Optional[ResourceDefinition]:
        return self._resources_by_uri.get(_normalize_uri(uri))

    def describe_tools(self) -> List[Dict[str, Any]]:
        """Tool listing for discovery, without handler internals."""
        return [tool.describe() for tool in self._tools]

    def describe_resources(self) -> List[Dict[str, Any]]:
        return [resource.describe() for resource in self._resources]
