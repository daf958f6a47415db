"""Error taxonomy for the gateway."""

from typing import Any, Dict, List, Optional


class StartupError(Exception):
    """Fatal configuration problem. The process must not start."""


class CatalogError(StartupError):
    """Tool or resource catalog could not be built."""


class GatewayError(Exception):
    """Base class for errors rendered to HTTP callers."""

    status = 500
    default_message = "Gateway error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the JSON body sent to the caller."""
        data: Dict[str, Any] = {
            "error": self.kind,
            "message": self.message,
            "status": self.status,
        }
        if self.details is not None:
            data["details"] = self.details
        return data


# Authentication

class MissingCredential(GatewayError):
    status = 401
    default_message = "Missing bearer token"


class InvalidCredential(GatewayError):
    status = 403
    default_message = "Invalid bearer token"


# Not found

class UnknownTool(GatewayError):
    status = 404
    default_message = "Tool not found"


class UnknownSession(GatewayError):
    status = 404
    default_message = "Session not found or inactive"


class RouteNotFound(GatewayError):
    status = 404
    default_message = "Not Found"


# Bad request

class MissingSessionId(GatewayError):
    status = 400
    default_message = "Missing sessionId query parameter"


class InvalidMessage(GatewayError):
    status = 400
    default_message = "Could not parse message"


class InvalidInput(GatewayError):
    status = 400
    default_message = "Input validation failed"


class MethodNotAllowed(GatewayError):
    status = 405
    default_message = "Method not allowed"


# Server side

class HandlerError(GatewayError):
    status = 500
    default_message = "Tool execution failed"


class SetupError(GatewayError):
    status = 500
    default_message = "Failed to establish streaming connection"


class MessageDeliveryError(GatewayError):
    status = 500
    default_message = "Failed to process message"
