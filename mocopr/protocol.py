"""JSON-RPC message types and protocol helpers."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import (
    ErrorCode,
    InternalError,
    InvalidRequestError,
    McpError,
    ParseError,
)

PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_VERSIONS = ("2025-06-18",)
JSONRPC_VERSION = "2.0"

RequestId = Union[str, int]


def _check_id(value: Any) -> Optional[RequestId]:
    if value is None or (isinstance(value, (str, int)) and not isinstance(value, bool)):
        return value
    raise InvalidRequestError("Request id must be a string or a number")


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidRequestError(f"Field '{key}' must be a string")
    return value


@dataclass
class JsonRpcError:
    """The error member of a JSON-RPC response."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result

    @classmethod
    def from_dict(cls, data: Any) -> JsonRpcError:
        if not isinstance(data, dict):
            raise InvalidRequestError("Field 'error' must be an object")
        code = data.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            raise InvalidRequestError("Field 'code' must be an integer")
        return cls(code, _require_str(data, "message"), data.get("data"))


@dataclass
class JsonRpcRequest:
    """A JSON-RPC request."""

    method: str
    params: Any = None
    id: Optional[RequestId] = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            result["id"] = self.id
        result["method"] = self.method
        if self.params is not None:
            result["params"] = self.params
        return result

    @classmethod
    def from_dict(cls, data: dict) -> JsonRpcRequest:
        return cls(
            method=_require_str(data, "method"),
            params=data.get("params"),
            id=_check_id(data.get("id")),
            jsonrpc=_require_str(data, "jsonrpc"),
        )


@dataclass
class JsonRpcResponse:
    """A JSON-RPC response carrying either a result or an error."""

    id: Optional[RequestId] = None
    result: Any = None
    error: Optional[JsonRpcError] = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.to_dict()
        else:
            data["result"] = self.result
        return data

    @classmethod
    def from_dict(cls, data: dict) -> JsonRpcResponse:
        raw_error = data.get("error")
        return cls(
            id=_check_id(data.get("id")),
            result=data.get("result"),
            error=None if raw_error is None else JsonRpcError.from_dict(raw_error),
            jsonrpc=_require_str(data, "jsonrpc"),
        )


@dataclass
class JsonRpcNotification:
    """A JSON-RPC notification: a request that expects no response."""

    method: str
    params: Any = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            result["params"] = self.params
        return result

    @classmethod
    def from_dict(cls, data: dict) -> JsonRpcNotification:
        return cls(
            method=_require_str(data, "method"),
            params=data.get("params"),
            jsonrpc=_require_str(data, "jsonrpc"),
        )


JsonRpcMessage = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcNotification]


def is_version_supported(version: str) -> bool:
    """Return whether the given protocol version is supported."""
    return version in SUPPORTED_VERSIONS


def latest_version() -> str:
    """Return the latest supported protocol version."""
    return PROTOCOL_VERSION


def create_request(method: str, params: Any = None, id: Optional[RequestId] = None) -> JsonRpcRequest:
    return JsonRpcRequest(method=method, params=params, id=id)


def create_response(
    id: Optional[RequestId] = None,
    result: Any = None,
    error: Optional[JsonRpcError] = None,
) -> JsonRpcResponse:
    return JsonRpcResponse(id=id, result=result, error=error)


def create_notification(method: str, params: Any = None) -> JsonRpcNotification:
    return JsonRpcNotification(method=method, params=params)


def create_error(code: int, message: str, data: Any = None) -> JsonRpcError:
    return JsonRpcError(code=code, message=message, data=data)


def generate_request_id() -> RequestId:
    """Return a new unique request id."""
    return str(uuid.uuid4())


def parse_message(message: str | bytes) -> JsonRpcMessage:
    """Parse a JSON-RPC request, response or notification from text."""
    try:
        value = json.loads(message)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc

    if isinstance(value, dict):
        if "method" in value:
            if "id" in value:
                return JsonRpcRequest.from_dict(value)
            return JsonRpcNotification.from_dict(value)
        if "result" in value or "error" in value:
            return JsonRpcResponse.from_dict(value)
    raise InvalidRequestError("Invalid JSON-RPC message format")


def serialize_message(message: JsonRpcMessage) -> str:
    """Serialize a JSON-RPC message to compact JSON text."""
    if not isinstance(message, (JsonRpcRequest, JsonRpcResponse, JsonRpcNotification)):
        raise TypeError(f"Not a JSON-RPC message: {type(message).__name__}")
    try:
        return json.dumps(message.to_dict(), separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise InternalError(f"Failed to serialize message: {exc}") from exc


def error_to_jsonrpc(error: BaseException) -> JsonRpcError:
    """Map an exception to the JSON-RPC error sent back to the peer."""
    if isinstance(error, McpError):
        return create_error(int(error.code), str(error))
    return create_error(int(ErrorCode.INTERNAL_ERROR), str(error))


def validate_method_name(method: str) -> bool:
    """A method name is non-empty and made of alphanumerics, '/' and '_'."""
    return bool(method) and all(c.isalnum() or c in "/_" for c in method)


def method_category(method: str) -> str:
    """Return the part of a method name before the first '/'."""
    return method.split("/", 1)[0]