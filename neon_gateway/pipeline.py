"""Validate, dispatch and normalize tool invocations."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from neon_gateway.catalog import Catalog
from neon_gateway.errors import GatewayError, HandlerError, InvalidInput, UnknownTool

logger = logging.getLogger("neon-gateway.pipeline")


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one invocation: a value, or a GatewayError describing the failure."""

    value: Any = None
    error: Optional[GatewayError] = None

    @classmethod
    def success(cls, value: Any) -> "InvocationResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GatewayError) -> "InvocationResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> int:
        return 200 if self.error is None else self.error.status

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return self.error.to_dict()
        return {"result": self.value}


def format_path(path: Iterable[Union[str, int]]) -> str:
    """Render a jsonschema path deque as ``field.child[0]``."""
    rendered = ""
    for part in path:
        if isinstance(part, int):
            rendered += f"[{part}]"
        elif rendered:
            rendered += f".{part}"
        else:
            rendered = str(part)
    return rendered


def _violations(error: ValidationError) -> List[Dict[str, str]]:
    base = list(error.absolute_path)
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [name for name in error.validator_value if name not in error.instance]
        return [
            {"path": format_path(base + [name]), "message": f"'{name}' is a required property"}
            for name in missing
        ]
    return [{"path": format_path(base), "message": error.message}]


def validate_input(schema: Dict[str, Any], raw_input: Any) -> List[Dict[str, str]]:
    """Return the field-level violations of raw_input against schema (empty when valid)."""
    validator = Draft202012Validator(schema)
    violations: List[Dict[str, str]] = []
    seen = set()
    for error in validator.iter_errors(raw_input):
        for violation in _violations(error):
            key = (violation["path"], violation["message"])
            if key not in seen:
                seen.add(key)
                violations.append(violation)
    violations.sort(key=lambda v: v["path"])
    return violations


class InvocationPipeline:
    """Stateless: every call is independent and may run concurrently with others."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog

    async def invoke(self, tool_name: str, raw_input: Any) -> InvocationResult:
        tool = self.catalog.tool(tool_name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", tool_name)
            return InvocationResult.failure(UnknownTool(f"Unknown tool: {tool_name}"))

        if raw_input is None:
            raw_input = {}
        violations = validate_input(tool.input_schema, raw_input)
        if violations:
            logger.info("Invalid input for tool %s: %d violation(s)", tool_name, len(violations))
            return InvocationResult.failure(
                InvalidInput(f"Invalid input for tool {tool_name}", details=violations)
            )

        if not isinstance(raw_input, Mapping):
            logger.info("Invalid input for tool %s: not an object", tool_name)
            return InvocationResult.failure(InvalidInput(
                f"Invalid input for tool {tool_name}",
                details=[{"path": "", "message": f"{raw_input!r} is not an object"}],
            ))

        params = dict(raw_input)
        try:
            value = await tool.handler(params)
        except Exception as e:
            logger.exception("Tool %s failed", tool_name)
            return InvocationResult.failure(HandlerError(str(e) or type(e).__name__))

        return InvocationResult.success(value)
