"""Custom exceptions for the Atelier storefront."""


class AtelierError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(AtelierError):
    """Raised when request input is malformed. Carries per-field messages."""
    def __init__(self, errors, message='Datos inválidos'):
        super().__init__(message, 422, {'errors': errors})
        self.errors = errors


class BusinessLogicError(AtelierError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(AtelierError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class PriceUnavailableError(BusinessLogicError):
    """
    A (product, size, fabric) combination has no sellable price right now.

    This is an expected outcome ("not currently sellable"), not a system fault.
    """
    reason = 'PRICE_UNAVAILABLE'

    def __init__(self, message='Precio no disponible para esta combinación'):
        super().__init__(message, status_code=422, payload={'reason': self.reason})


class FabricNotFoundError(PriceUnavailableError):
    reason = 'FABRIC_NOT_FOUND'

    def __init__(self, fabric_id):
        super().__init__(f'Tela {fabric_id} no encontrada')
        self.fabric_id = fabric_id


class PriceRowNotFoundError(PriceUnavailableError):
    reason = 'PRICE_ROW_NOT_FOUND'

    def __init__(self, product_id, size_cm):
        super().__init__(f'Sin precio para el producto {product_id} en {size_cm} cm')
        self.product_id = product_id
        self.size_cm = size_cm


class ProductNotSellableError(PriceUnavailableError):
    """Product is inactive or outside the active catalog whitelist."""
    reason = 'NOT_ACTIVE_IN_CATALOG'

    def __init__(self, product_id):
        super().__init__(f'El producto {product_id} no está disponible en el catálogo vigente')
        self.product_id = product_id


class EmptyCartAfterValidationError(BusinessLogicError):
    """Reconciliation removed every line; checkout must not produce an empty order."""
    def __init__(self, removed_count):
        message = (
            f'Tu carrito quedó vacío: {removed_count} producto(s) fueron removidos '
            'por cambios de precio o disponibilidad.'
        )
        super().__init__(message, status_code=400, payload={'removed_count': removed_count})
        self.removed_count = removed_count


class CartChangedError(BusinessLogicError):
    """The cart changed between reconciliation and the checkout lock."""
    def __init__(self, message='Tu carrito cambió mientras confirmábamos el pedido. Revisalo e intentá nuevamente.'):
        super().__init__(message, status_code=409)


class InvalidStatusTransitionError(BusinessLogicError):
    """Raised when an order cannot move to the requested status."""
    def __init__(self, current_status, new_status):
        message = f'No se puede pasar de {current_status} a {new_status}'
        super().__init__(message, status_code=409, payload={
            'current_status': current_status,
            'new_status': new_status,
        })


class CheckoutFailedError(AtelierError):
    """The atomic checkout unit failed and was rolled back. Safe to retry."""
    def __init__(self, message='No pudimos confirmar tu pedido. Intentá nuevamente.'):
        super().__init__(message, 503, {'retryable': True})


class AuthenticationRequiredError(AtelierError):
    """Raised when no caller identity is available."""
    def __init__(self, message='Debes iniciar sesión'):
        super().__init__(message, 401)


class UnauthorizedError(AtelierError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
