"""Errors raised by the service layer.

Each error carries the HTTP status it maps to, so the web layer can
translate them with a single exception handler.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400


class Unauthorized(ServiceError):
    status_code = 401

    NO_TOKEN = "NoToken"
    INVALID_TOKEN = "InvalidToken"
    BAD_CREDENTIALS = "BadCredentials"

    MESSAGES = {
        NO_TOKEN: "Token not provided",
        INVALID_TOKEN: "Invalid token",
        BAD_CREDENTIALS: "Incorrect email or password",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, reason))
        self.reason = reason


class Forbidden(ServiceError):
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(ServiceError):
    status_code = 404


class PersistenceError(ServiceError):
    status_code = 500
