"""Error types raised by the protocol layer, handlers and transports."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """JSON-RPC and MCP error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    CAPABILITY_NOT_SUPPORTED = -32000
    RESOURCE_NOT_FOUND = -32001
    TOOL_NOT_FOUND = -32002
    PROMPT_NOT_FOUND = -32003
    PERMISSION_DENIED = -32004
    RATE_LIMITED = -32005


class McpError(Exception):
    """Base class for every error raised by this package.

    ``code`` is the JSON-RPC error code the error maps to on the wire.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = self.default_message if message is None else message
        super().__init__(self.message)


class ParseError(McpError):
    code = ErrorCode.PARSE_ERROR
    default_message = "Parse error"


class InvalidRequestError(McpError):
    code = ErrorCode.INVALID_REQUEST
    default_message = "Invalid request"


class MethodNotFoundError(McpError):
    code = ErrorCode.METHOD_NOT_FOUND
    default_message = "Method not found"


class InvalidParamsError(McpError):
    code = ErrorCode.INVALID_PARAMS
    default_message = "Invalid params"


class InternalError(McpError):
    default_message = "Internal error"


class ServerError(McpError):
    default_message = "Server error"


class RequestTimeoutError(McpError):
    default_message = "Request timed out"


class SecurityError(McpError):
    default_message = "Security violation"


class NotFoundError(McpError):
    default_message = "Not found"


class OperationFailedError(McpError):
    default_message = "Operation failed"


class ResourceError(McpError):
    default_message = "Resource error"


class CapabilityNotSupportedError(McpError):
    code = ErrorCode.CAPABILITY_NOT_SUPPORTED
    default_message = "Capability not supported"


class ResourceNotFoundError(McpError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"


class ToolNotFoundError(McpError):
    code = ErrorCode.TOOL_NOT_FOUND
    default_message = "Tool not found"


class PromptNotFoundError(McpError):
    code = ErrorCode.PROMPT_NOT_FOUND
    default_message = "Prompt not found"


class PermissionDeniedError(McpError):
    code = ErrorCode.PERMISSION_DENIED
    default_message = "Permission denied"


class RateLimitExceededError(McpError):
    code = ErrorCode.RATE_LIMITED
    default_message = "Rate limit exceeded"


class TransportError(McpError):
    default_message = "Transport error"


class ConnectionFailedError(TransportError):
    default_message = "Connection failed"


class SendFailedError(TransportError):
    default_message = "Send failed"


class ReceiveFailedError(TransportError):
    default_message = "Receive failed"


class NotReadyError(TransportError):
    default_message = "Transport not ready"


class TransportClosedError(TransportError):
    default_message = "Transport closed"