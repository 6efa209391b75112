"""JSON-RPC 2.0 dispatch for the MCP handshake and tool methods."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    Implementation,
    InitializeResult,
    ServerCapabilities,
    ToolsCapability,
)
from pydantic import BaseModel, StrictInt, StrictStr, ValidationError

from social_mcp.auth.bearer import CallContext
from social_mcp.tools.registry import ToolError, ToolRegistry

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

RequestId = str | int | None
Handler = Callable[[dict[str, Any], CallContext], dict[str, Any]]


class RpcRequest(BaseModel):
    jsonrpc: str
    method: str
    params: dict[str, Any] | None = None
    id: StrictStr | StrictInt | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class RpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def result_response(request_id: RequestId, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: RequestId, error: RpcError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_dict()}


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class Dispatcher:
    """Routes one envelope at a time to its method handler.

    Holds no per-call state. Handler failures become JSON-RPC error
    objects so one bad call never takes down the transport.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        server_name: str = "social-mcp",
        server_version: str = "1.0.0",
    ) -> None:
        self.registry = registry
        self.server_info = Implementation(name=server_name, version=server_version)
        self._handlers: dict[str, Handler] = {
            "initialize": self._initialize,
            "notifications/initialized": self._initialized,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    def handle(self, payload: Any, context: CallContext) -> dict[str, Any] | None:
        """Process one decoded envelope. Returns None for notifications."""
        if not isinstance(payload, dict):
            return error_response(
                None, RpcError(INVALID_REQUEST, "Invalid Request: expected a single JSON object")
            )

        raw_id = payload.get("id")
        request_id = raw_id if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) else None

        try:
            request = RpcRequest.model_validate(payload)
        except ValidationError:
            return error_response(request_id, RpcError(INVALID_REQUEST, "Invalid Request"))
        if request.jsonrpc != JSONRPC_VERSION:
            return error_response(
                request_id, RpcError(INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")
            )

        logger.debug("Dispatching %s (id=%r) for %s", request.method, request.id, context.principal.id)
        try:
            handler = self._handlers.get(request.method)
            if handler is None:
                raise RpcError(METHOD_NOT_FOUND, f"Method not found: {request.method}")
            result = handler(request.params or {}, context)
        except RpcError as e:
            return None if request.is_notification else error_response(request.id, e)
        except Exception as e:
            logger.exception("Unhandled error in %s", request.method)
            error = RpcError(INTERNAL_ERROR, f"Internal error: {e}")
            return None if request.is_notification else error_response(request.id, error)

        if request.is_notification:
            return None
        return result_response(request.id, result)

    # -- Methods --

    def _initialize(self, params: dict[str, Any], context: CallContext) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        result = InitializeResult(
            protocolVersion=version,
            capabilities=ServerCapabilities(
                tools=ToolsCapability(listChanged=False, names=self.registry.names)
            ),
            serverInfo=self.server_info,
            instructions="Available tools: " + ", ".join(self.registry.names),
        )
        logger.info("Client %s initializing (protocol %s)", context.client_id, version)
        return _dump(result)

    def _initialized(self, params: dict[str, Any], context: CallContext) -> dict[str, Any]:
        logger.debug("Client %s completed initialization", context.client_id)
        return {}

    def _list_tools(self, params: dict[str, Any], context: CallContext) -> dict[str, Any]:
        return {"tools": [_dump(tool) for tool in self.registry.list_tools()]}

    def _call_tool(self, params: dict[str, Any], context: CallContext) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise RpcError(INVALID_PARAMS, "tools/call requires params.name")
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, dict):
            raise RpcError(INVALID_PARAMS, "params.arguments must be an object")

        try:
            result = self.registry.call(name, arguments, context.principal)
        except ToolError as e:
            logger.info("Tool %s failed: %s", name, e.reason)
            raise RpcError(e.code, e.message, {"reason": e.reason}) from e
        return _dump(result)
