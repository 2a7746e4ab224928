# storefront/domain/errors.py
"""
Error taxonomy shared by services and the API boundary.

Services raise these; routers turn them into the result envelope. Anything
that is not a ShopError is treated as unexpected and logged.
"""


class ShopError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(ShopError):
    status_code = 401

    def __init__(self, message: str = "Authentication required."):
        super().__init__(message)


class AccessDenied(ShopError):
    status_code = 403


class ValidationFailed(ShopError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", field_errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.field_errors = field_errors


class NotFound(ShopError):
    status_code = 404


class CheckoutSessionNotFound(NotFound):
    """Missing, expired, or owned by someone else."""


class InsufficientStock(ShopError):
    status_code = 409

    def __init__(self, name: str, available: int, requested: int):
        super().__init__(
            f'Insufficient stock for "{name}". Available: {available}, Requested: {requested}'
        )
        self.name = name
        self.available = available
        self.requested = requested


class InvalidStatusTransition(ShopError):
    status_code = 409
