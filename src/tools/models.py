# src/tools/models.py — v1
"""Tool-calling types: ToolInvocation and the ToolExecutionResult union."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class ToolInvocation(BaseModel):
    """A parsed tool call, arguments already decoded to an object."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolSuccess(BaseModel):
    success: Literal[True] = True
    data: Any = None
    data_provenance: list[str] = Field(default_factory=list)


class ToolFailure(BaseModel):
    success: Literal[False] = False
    error: str
    data_provenance: list[str] = Field(default_factory=list)


ToolExecutionResult = Union[ToolSuccess, ToolFailure]


def serialize_result(result: ToolExecutionResult) -> str:
    """JSON payload sent back to the model as the tool result content."""
    return result.model_dump_json()
