"""
Error taxonomy for the submission endpoint.

Each error carries the HTTP status and the message that is safe to return to
the caller. Anything more detailed belongs in the logs.
"""

from __future__ import annotations


class RelayError(Exception):
    status_code = 500
    public_message = "Internal server error. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(RelayError):
    """Client sent a request we cannot process."""

    status_code = 400
    public_message = "Invalid submission payload"


class MethodNotAllowedError(RelayError):
    status_code = 405
    public_message = "Method not allowed"

    def to_payload(self) -> dict:
        return {"error": self.message}


class ConfigError(RelayError):
    """Telegram secrets are missing from the process configuration."""

    public_message = "Server configuration error"


class DeliveryError(RelayError):
    """The report could not be delivered to Telegram."""

    public_message = "Failed to send report to teacher"


class InternalError(RelayError):
    pass
