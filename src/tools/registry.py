# src/tools/registry.py — v1
"""Tool catalog with parse-and-validate execution that never raises.

Each tool declares a pydantic argument model; its JSON schema is the
vendor-agnostic parameter declaration that adapters translate into
their own tool shapes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, ValidationError

from portfolio_ai.tools.models import (
    ToolExecutionResult,
    ToolFailure,
    ToolInvocation,
    ToolSuccess,
)

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[Any], Awaitable[ToolExecutionResult]]


@dataclass(frozen=True)
class ToolDefinition:
    """Named, schema-validated operation a model may invoke."""

    name: str
    description: str
    input_model: type[BaseModel]
    execute: ToolExecutor

    @property
    def parameters(self) -> dict[str, Any]:
        return json_schema_for(self.input_model)


def json_schema_for(model: type[BaseModel]) -> dict[str, Any]:
    """Flat JSON schema for a model: refs inlined, titles and null branches dropped."""
    schema = model.model_json_schema(by_alias=True)
    defs = schema.pop("$defs", {})
    return _simplify(schema, defs)


def _simplify(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_simplify(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        target = defs[node["$ref"].rsplit("/", 1)[-1]]
        merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
        return _simplify(merged, defs)

    any_of = node.get("anyOf")
    if isinstance(any_of, list):
        branches = [b for b in any_of if b != {"type": "null"}]
        if len(branches) == 1:
            rest = {k: v for k, v in node.items() if k != "anyOf"}
            if rest.get("default", 0) is None:
                rest.pop("default")
            return _simplify({**branches[0], **rest}, defs)

    return {
        key: _simplify(value, defs)
        for key, value in node.items()
        if key != "title" or isinstance(value, dict)
    }


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid arguments: " + "; ".join(parts)


class ToolRegistry:
    """Immutable catalog of tools, registered once at startup."""

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def list_tool_definitions(self) -> list[dict[str, Any]]:
        """Vendor-agnostic declarations: name, description, parameters."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            }
            for tool in self._tools.values()
        ]

    def parse_invocation(
        self, name: str, raw_args: Any
    ) -> ToolInvocation | ToolFailure:
        """Decode raw arguments (object or JSON string) into a ToolInvocation."""
        if name not in self._tools:
            return ToolFailure(error=f"Unknown tool: {name}")

        parsed: Any = raw_args
        if raw_args is None:
            parsed = {}
        elif isinstance(raw_args, str):
            text = raw_args.strip()
            if not text:
                parsed = {}
            else:
                try:
                    parsed = json.loads(text)
                except (ValueError, RecursionError) as e:
                    return ToolFailure(error=f"Invalid JSON arguments for {name}: {e}")

        if not isinstance(parsed, dict):
            return ToolFailure(
                error=f"Arguments for {name} must be a JSON object, got {type(parsed).__name__}"
            )
        return ToolInvocation(name=name, arguments=parsed)

    async def execute(self, invocation: ToolInvocation) -> ToolExecutionResult:
        """Validate and run a parsed invocation. Never raises."""
        tool = self._tools.get(invocation.name)
        if tool is None:
            return ToolFailure(error=f"Unknown tool: {invocation.name}")

        try:
            args = tool.input_model.model_validate(invocation.arguments)
        except ValidationError as e:
            return ToolFailure(error=_format_validation_error(e))

        logger.debug("Executing tool %s", tool.name)
        try:
            result = await tool.execute(args)
        except Exception as e:
            logger.warning("Tool %s failed: %s", tool.name, e, exc_info=True)
            return ToolFailure(error=str(e) or "Tool execution failed")

        if result is None:
            return ToolFailure(error="Tool execution returned no result")
        if isinstance(result, ToolSuccess):
            logger.debug(
                "Tool %s succeeded (provenance: %s)",
                tool.name, ", ".join(result.data_provenance),
            )
        return result

    async def execute_by_name(self, name: str, raw_args: Any) -> ToolExecutionResult:
        """Parse, validate and execute in one step. Never raises."""
        parsed = self.parse_invocation(name, raw_args)
        if isinstance(parsed, ToolFailure):
            return parsed
        return await self.execute(parsed)
