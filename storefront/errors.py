"""
Taxonomie des erreurs métier du storefront.
Chaque erreur porte son status HTTP et un code machine; la traduction en réponse
JSON uniforme {success: false, error} est faite dans app_setup.exception_handlers.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(StorefrontError):
    status_code = 400
    code = "validation_error"


class InvalidOrderError(ValidationError):
    code = "invalid_order"


class NotFoundError(StorefrontError):
    status_code = 404
    code = "not_found"


class StoreNotFoundError(NotFoundError):
    code = "store_not_found"

    def __init__(self, message: str = "Store not found or not active"):
        super().__init__(message)


class OrderNotFoundError(NotFoundError):
    code = "order_not_found"

    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"


class AuthError(StorefrontError):
    status_code = 401
    code = "unauthenticated"


class ForbiddenError(StorefrontError):
    status_code = 403
    code = "forbidden"


class SignatureMismatchError(StorefrontError):
    status_code = 400
    code = "signature_mismatch"

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message)


class ConflictError(StorefrontError):
    status_code = 409
    code = "conflict"


class RateLimitError(StorefrontError):
    status_code = 429
    code = "rate_limited"


class GatewayUnavailableError(StorefrontError):
    status_code = 502
    code = "gateway_unavailable"
    retryable = True


class AlreadyVerifiedError(StorefrontError):
    """Informatif: la commande est déjà payée. Jamais renvoyé tel quel au client."""
    status_code = 200
    code = "already_verified"
