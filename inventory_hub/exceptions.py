class InventoryError(Exception):
    """Base exception for inventory engine errors.

    Subclasses pick their HTTP status, fallback message and error code
    through class attributes.
    """

    status_code = 500
    default_message = "An error occurred in the inventory engine"
    default_code = None

    def __init__(self, message=None, code=None, details=None):
        """
        Args:
            message: Error message
            code: Machine readable error code
            details: Offending fields, states or quantities
        """
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        return f"[{self.code}] {self.message}" if self.code else self.message

    def to_dict(self):
        """Error body used by the HTTP error envelope."""
        body = {'error': type(self).__name__, 'message': self.message}
        if self.code:
            body['code'] = self.code
        if self.details:
            body['details'] = self.details
        return body


class ConfigError(InventoryError):
    default_message = "Configuration error"


class ValidationError(InventoryError):
    """Malformed or missing request input."""

    status_code = 400
    default_message = "Validation error"
    default_code = 'VALIDATION'


class StateTransitionError(InventoryError):
    """Purchase order status change not permitted from the current status."""

    status_code = 400
    default_code = 'INVALID_TRANSITION'

    def __init__(self, from_status, to_status, message=None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot transition from {from_status} to {to_status}",
            details={'from_status': from_status, 'to_status': to_status}
        )


class NegativeStockError(InventoryError):
    """An operation would drive on-hand stock below zero."""

    status_code = 400
    default_code = 'NEGATIVE_STOCK'

    def __init__(self, current, requested, component_id=None):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot reduce stock below 0. Current: {current}, "
            f"Requested reduction: {requested}",
            details={'component_id': component_id, 'current': current, 'requested': requested}
        )


class NotFoundError(InventoryError):
    status_code = 404
    default_message = "Resource not found"
    default_code = 'NOT_FOUND'


class PersistenceError(InventoryError):
    """The store rejected an operation or a concurrent writer won every retry."""

    default_message = "Database error"
    default_code = 'PERSISTENCE'
