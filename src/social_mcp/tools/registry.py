"""Declarative tool registry.

Each tool is a descriptor (name, description, argument model) plus a plain
executor ``(principal, arguments) -> str``. The registry is filled at
startup and frozen before the server accepts calls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    CallToolResult,
    TextContent,
    Tool,
)
from pydantic import BaseModel, ValidationError

from social_mcp.auth.models import Principal

logger = logging.getLogger(__name__)

Executor = Callable[[Principal, Any], str]


class ToolError(Exception):
    """Failure inside a tool. Surfaces as a JSON-RPC error, never a crash."""

    code = INTERNAL_ERROR

    def __init__(self, reason: str, message: str) -> None:
        self.reason = reason
        self.message = message
        super().__init__(message)


class InvalidArguments(ToolError):
    code = INVALID_PARAMS


class UnknownTool(ToolError):
    code = METHOD_NOT_FOUND


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    arguments: type[BaseModel]
    execute: Executor

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.arguments.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema)


class ToolRegistry:
    """Name -> descriptor mapping, kept in registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._frozen = False

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def register(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        if descriptor.name in self._tools:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        return descriptor

    def tool(
        self, name: str, description: str, arguments: type[BaseModel]
    ) -> Callable[[Executor], Executor]:
        """Decorator form of :meth:`register`."""

        def decorator(fn: Executor) -> Executor:
            self.register(ToolDescriptor(name, description, arguments, fn))
            return fn

        return decorator

    def freeze(self) -> ToolRegistry:
        self._frozen = True
        return self

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return [d.to_tool() for d in self._tools.values()]

    def call(self, name: str, arguments: dict[str, Any] | None, principal: Principal) -> CallToolResult:
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise UnknownTool("unknown_tool", f"Unknown tool: {name}")

        try:
            parsed = descriptor.arguments.model_validate(arguments or {})
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidArguments("invalid_arguments", f"Invalid arguments for {name}: {details}") from e

        logger.debug("Executing tool %s for %s", name, principal.id)
        text = descriptor.execute(principal, parsed)
        return CallToolResult(content=[TextContent(type="text", text=text)])
