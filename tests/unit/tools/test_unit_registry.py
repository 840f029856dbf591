# tests/unit/tools/test_unit_registry.py — v2
"""Tests for tools/registry.py — parse, validate, execute, never raise."""

from __future__ import annotations

import json

import pytest
from pydantic import BaseModel, Field

from portfolio_ai.tools.models import ToolFailure, ToolInvocation, ToolSuccess, serialize_result
from portfolio_ai.tools.portfolio_tools import GetHoldingsArgs, SimulateTradeArgs
from portfolio_ai.tools.registry import ToolDefinition, ToolRegistry, json_schema_for


class EchoArgs(BaseModel):
    word: str = Field(min_length=1)
    times: int = 1


async def _echo(args: EchoArgs):
    return ToolSuccess(data=args.word * args.times, data_provenance=["echo:repeat"])


async def _boom(args: EchoArgs):
    raise RuntimeError("boom")


async def _nothing(args: EchoArgs):
    return None


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry([
        ToolDefinition("echo", "Repeat a word.", EchoArgs, _echo),
        ToolDefinition("boom", "Always fails.", EchoArgs, _boom),
        ToolDefinition("nothing", "Returns nothing.", EchoArgs, _nothing),
    ])


class TestToolRegistryCatalog:
    def test_duplicate_names_rejected(self):
        tool = ToolDefinition("echo", "Repeat.", EchoArgs, _echo)
        with pytest.raises(ValueError, match="Duplicate"):
            ToolRegistry([tool, tool])

    def test_names_and_membership(self, registry):
        assert registry.names == ["echo", "boom", "nothing"]
        assert "echo" in registry
        assert "missing" not in registry
        assert len(registry) == 3

    def test_list_tool_definitions(self, registry):
        definitions = registry.list_tool_definitions()
        assert definitions[0]["name"] == "echo"
        assert definitions[0]["description"] == "Repeat a word."
        params = definitions[0]["parameters"]
        assert params["type"] == "object"
        assert params["required"] == ["word"]
        assert "title" not in params


class TestJsonSchemaFor:
    def test_refs_inlined(self):
        schema = json_schema_for(GetHoldingsArgs)
        text = json.dumps(schema)
        assert "$ref" not in text
        assert "$defs" not in text
        filter_props = schema["properties"]["filter"]["properties"]
        assert "categoryId" in filter_props
        assert "includeDeleted" in filter_props

    def test_nullable_collapsed(self):
        schema = json_schema_for(SimulateTradeArgs)
        units = schema["properties"]["units"]
        assert "anyOf" not in units
        assert units["type"] == "number"
        assert "default" not in units

    def test_extra_forbidden(self):
        assert json_schema_for(GetHoldingsArgs)["additionalProperties"] is False


class TestParseInvocation:
    def test_object_arguments(self, registry):
        parsed = registry.parse_invocation("echo", {"word": "hi"})
        assert parsed == ToolInvocation(name="echo", arguments={"word": "hi"})

    def test_json_string_arguments(self, registry):
        parsed = registry.parse_invocation("echo", '{"word": "hi", "times": 2}')
        assert isinstance(parsed, ToolInvocation)
        assert parsed.arguments == {"word": "hi", "times": 2}

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_arguments_become_object(self, registry, raw):
        parsed = registry.parse_invocation("echo", raw)
        assert isinstance(parsed, ToolInvocation)
        assert parsed.arguments == {}

    def test_invalid_json(self, registry):
        parsed = registry.parse_invocation("echo", "{not json")
        assert isinstance(parsed, ToolFailure)
        assert parsed.error.startswith("Invalid JSON arguments for echo")

    def test_non_object_json(self, registry):
        parsed = registry.parse_invocation("echo", "[1, 2]")
        assert isinstance(parsed, ToolFailure)
        assert "must be a JSON object" in parsed.error

    def test_unknown_tool(self, registry):
        parsed = registry.parse_invocation("nope", {})
        assert parsed == ToolFailure(error="Unknown tool: nope")


class TestExecuteByName:
    @pytest.mark.asyncio
    async def test_success(self, registry):
        result = await registry.execute_by_name("echo", {"word": "ab", "times": 3})
        assert result.success is True
        assert result.data == "ababab"
        assert result.data_provenance == ["echo:repeat"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        result = await registry.execute_by_name("nope", "{}")
        assert result.success is False
        assert result.error == "Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_validation_failure(self, registry):
        result = await registry.execute_by_name("echo", {"word": ""})
        assert result.success is False
        assert result.error.startswith("Invalid arguments: word:")

    @pytest.mark.asyncio
    async def test_executor_exception_becomes_failure(self, registry):
        result = await registry.execute_by_name("boom", {"word": "x"})
        assert result == ToolFailure(error="boom")

    @pytest.mark.asyncio
    async def test_none_result_becomes_failure(self, registry):
        result = await registry.execute_by_name("nothing", {"word": "x"})
        assert result.success is False
        assert result.error == "Tool execution returned no result"

    @pytest.mark.asyncio
    async def test_bad_json_on_real_catalog(self, tool_registry):
        result = await tool_registry.execute_by_name("get_holdings", "{not json")
        assert result.success is False
        assert result.error

    @pytest.mark.asyncio
    async def test_deeply_nested_json_becomes_failure(self, tool_registry):
        result = await tool_registry.execute_by_name("get_holdings", "[" * 100000)
        assert result.success is False
        assert result.error.startswith("Invalid JSON arguments for get_holdings")


class TestSerializeResult:
    def test_success_shape(self):
        payload = json.loads(serialize_result(ToolSuccess(data={"a": 1}, data_provenance=["x"])))
        assert payload == {"success": True, "data": {"a": 1}, "data_provenance": ["x"]}

    def test_failure_shape(self):
        payload = json.loads(serialize_result(ToolFailure(error="nope")))
        assert payload == {"success": False, "error": "nope", "data_provenance": []}
