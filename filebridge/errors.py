"""Module errors: structured error taxonomy for the file bridge."""
#
# PURPOSE:
# Every failure that crosses the bridge boundary (REST handler, WebSocket
# message loop) is expressed as a BridgeError with a searchable code, a
# human-readable message and the HTTP status the REST surface should use.
#
# ERROR CODE FORMAT:
# - BRIDGE_XXX: Connection and dispatch errors raised by this process
# - BACKEND_XXX: Errors reported by (or while talking to) the MCP backend
# - CONFIG_XXX: Configuration errors
# - SYSTEM_XXX: Anything unexpected
#
# USAGE:
#   from filebridge.errors import NotConnectedError
#
#   raise NotConnectedError()
#
from enum import Enum
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    # Bridge Errors
    NOT_CONNECTED = "BRIDGE_001"
    UNKNOWN_ACTION = "BRIDGE_002"
    INVALID_MESSAGE = "BRIDGE_003"
    PAYLOAD_TOO_LARGE = "BRIDGE_004"

    # Backend Errors
    TRANSPORT_FAILURE = "BACKEND_001"
    TOOL_ERROR = "BACKEND_002"
    NOT_FOUND = "BACKEND_003"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # System Errors
    INTERNAL_ERROR = "SYSTEM_001"


class BridgeError(Exception):
    """
    Base exception class for the bridge with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "BRIDGE_001")
        message: Human-readable error message, sent verbatim to clients
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code for API responses
    """

    # Only missing files get a dedicated status; everything else surfaces as a
    # plain server error. Oversized bodies are refused before routing.
    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        ErrorCode.NOT_CONNECTED: 500,
        ErrorCode.UNKNOWN_ACTION: 500,
        ErrorCode.INVALID_MESSAGE: 500,
        ErrorCode.PAYLOAD_TOO_LARGE: 413,
        ErrorCode.TRANSPORT_FAILURE: 500,
        ErrorCode.TOOL_ERROR: 500,
        ErrorCode.NOT_FOUND: 404,
        ErrorCode.CONFIG_INVALID: 500,
        ErrorCode.INTERNAL_ERROR: 500,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, message, details, and http_status
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status
        }

    def to_response(self) -> Dict[str, Any]:
        """Body of a REST error response: ``{"error": message, "code": code}``."""
        return {"error": self.message, "code": self.code.value}


class NotConnectedError(BridgeError):
    """Raised when a backend call is attempted without a live channel."""

    def __init__(self, message: str = "Not connected to MCP server"):
        super().__init__(ErrorCode.NOT_CONNECTED, message)


class UnknownActionError(BridgeError):
    def __init__(self, action: Any):
        super().__init__(
            ErrorCode.UNKNOWN_ACTION,
            f"Unknown action: {action}",
            details={"action": action},
        )
        self.action = action


class InvalidMessageError(BridgeError):
    def __init__(self, message: str = "Invalid message format", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.INVALID_MESSAGE, message, details=details)


class TransportError(BridgeError):
    """Backend process or channel failure; the message is passed through verbatim."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.TRANSPORT_FAILURE, message, details=details)


class ToolError(BridgeError):
    """The backend answered, but flagged the tool result as an error."""

    def __init__(self, tool: str, message: str):
        super().__init__(ErrorCode.TOOL_ERROR, message, details={"tool": tool})
        self.tool = tool


class NotFoundError(BridgeError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.NOT_FOUND, message, details=details)


# ============================================================================
# Convenience Functions
# ============================================================================

def root_cause(error: BaseException) -> BaseException:
    """
    Unwrap task-group exception groups down to the first leaf exception.

    The stdio transport runs on anyio task groups, so a backend that dies on
    start-up surfaces as "unhandled errors in a TaskGroup" around the real
    failure.
    """
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return error


def handle_error(error: Exception, context: Optional[str] = None) -> BridgeError:
    """
    Convert a generic exception to a BridgeError.

    Bridge errors pass through untouched. Connection-flavoured exceptions
    (broken pipes, closed streams, dead processes) become TRANSPORT_FAILURE;
    everything else becomes INTERNAL_ERROR.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while listing files")

    Returns:
        BridgeError with appropriate code and message
    """
    error = root_cause(error)
    if isinstance(error, BridgeError):
        return error

    error_type = type(error).__name__

    if isinstance(error, (ConnectionError, EOFError, OSError)) or "Closed" in error_type:
        code = ErrorCode.TRANSPORT_FAILURE
    else:
        code = ErrorCode.INTERNAL_ERROR

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return BridgeError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error)
        }
    )


__all__ = [
    "ErrorCode",
    "BridgeError",
    "NotConnectedError",
    "UnknownActionError",
    "InvalidMessageError",
    "TransportError",
    "ToolError",
    "NotFoundError",
    "handle_error",
    "root_cause",
]
