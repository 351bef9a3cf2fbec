"""
Error taxonomy shared by the store, auth and domain layers.

Each error carries the HTTP status it maps to; ``main`` installs one handler
that renders any of them as ``{"detail": message}``.
"""


class ServiceError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = "Authentication required"


class Unauthorized(ServiceError):
    status_code = 401
    default_message = "Invalid username or password"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Invalid or expired token"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class Conflict(ServiceError):
    status_code = 409
    default_message = "Already exists"


class InsufficientBalance(ServiceError):
    status_code = 400
    default_message = "Not enough points to redeem this reward"


class InvalidState(ServiceError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class ServerError(ServiceError):
    status_code = 500
