# Overview: Error taxonomy shared by services and routes.

"""
Service errors carry the HTTP status the routes answer with.

Routes catch ServiceError and return {"error": message, "details": {...}};
anything else is logged and answered as a generic 500 so internal detail
never reaches the client.
"""


class ServiceError(Exception):
    """Base class for expected, client-visible failures."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """Malformed or missing input."""
    status_code = 400


class Unauthenticated(ServiceError):
    """Missing, invalid or expired session token."""
    status_code = 401


class InvalidStage(ServiceError):
    """Token stage does not match the requested operation."""
    status_code = 401


class InvalidCredentials(ServiceError):
    status_code = 401


class InvalidCode(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    """Authenticated, but the role is not allowed."""
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class AlreadyEnrolled(ServiceError):
    status_code = 409


class TwoFactorNotEnrolled(ServiceError):
    status_code = 400


class InsufficientInventory(ServiceError):
    status_code = 400


class InsufficientUnits(ServiceError):
    status_code = 400


class TooManyAttempts(ServiceError):
    status_code = 429


class OperationTimeout(ServiceError):
    status_code = 503


class Internal(ServiceError):
    status_code = 500
