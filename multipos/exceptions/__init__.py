"""Custom exceptions for the MultiPOS application."""
from decimal import Decimal


class PosError(Exception):
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


class ValidationError(PosError):
    """Raised for bad or missing input, before anything touches the database."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when a sale would take a product's stock below zero."""
    def __init__(self, product_name, required, available):
        message = f"Stock insuficiente para {product_name}: se requieren {_fmt_qty(required)}, disponible {_fmt_qty(available)}"
        super().__init__(message, status_code=409, payload={
            'product_name': product_name,
            'required': _fmt_qty(required),
            'available': _fmt_qty(available),
        })


class ExternalServiceError(PosError):
    """A third-party API (voice, LLM gateway, payment provider) failed."""
    def __init__(self, message="Error al comunicarse con el servicio externo", payload=None):
        super().__init__(message, 502, payload)


class ConfigurationError(PosError):
    """An integration was called without the credentials it needs."""
    def __init__(self, message, payload=None):
        super().__init__(message, 503, payload)


def _fmt_qty(value):
    value = Decimal(str(value))
    if value % 1 == 0:
        return f"{int(value)}"
    return f"{value:.2f}".rstrip('0').rstrip('.')
