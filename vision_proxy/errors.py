"""Exception types raised inside the proxy.

Each error serialises through ``to_dict`` into the same shape the HTTP layer
sends back to clients.
"""

from typing import Any, Dict


class ProxyError(Exception):
    """Base class for proxy exceptions."""

    error: str = "Internal Server Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ConfigurationError(ProxyError):
    """Startup configuration is missing or malformed. Fatal."""

    error = "Configuration Error"


class UploadTooLargeError(ProxyError):
    """Uploaded file exceeded the configured byte limit."""

    error = "Payload Too Large"
