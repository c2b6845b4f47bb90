"""
Domain exceptions for the exchange workflow.

Every error carries the HTTP ``status_code`` and a stable ``code`` string;
the exchange views turn them into responses.
Stock shortages surface as ``apps.inventory`` ``InsufficientStockError``,
re-exported here so callers only need one import.
"""

from apps.inventory.services.exceptions import InsufficientStockError


class ExchangeServiceError(Exception):
    """Base exception for all exchange service errors."""
    status_code = 400
    code = 'exchange_error'


class ExchangeValidationError(ExchangeServiceError):
    """Raised when input is missing or malformed (empty lines, bad quantity, blank refusal reason)."""
    code = 'validation_error'


class ExchangeNotFoundError(ExchangeServiceError):
    """Raised when an exchange does not exist or is not visible to the caller."""
    status_code = 404
    code = 'not_found'


class ExchangeLineNotFoundError(ExchangeServiceError):
    """Raised when a line does not belong to the exchange."""
    status_code = 404
    code = 'not_found'


class NotExchangePartyError(ExchangeServiceError):
    """Raised when the caller may see the exchange but not perform the action."""
    status_code = 403
    code = 'not_exchange_party'


class InvalidTransitionError(ExchangeServiceError):
    """Raised when an action is not allowed from the current status."""
    status_code = 409
    code = 'invalid_transition'

    def __init__(self, message, *, action=None, status=None):
        super().__init__(message)
        self.action = action
        self.status = status

    @property
    def payload(self):
        return {'action': self.action, 'status': self.status}


class AmountExceedsDueError(ExchangeServiceError):
    """Raised when a payment would push amount_paid above amount_due."""
    code = 'amount_exceeds_due'

    def __init__(self, message, *, amount=None, remaining=None):
        super().__init__(message)
        self.amount = amount
        self.remaining = remaining

    @property
    def payload(self):
        return {
            'amount': str(self.amount) if self.amount is not None else None,
            'remaining': str(self.remaining) if self.remaining is not None else None,
        }


class ConcurrencyConflictError(ExchangeServiceError):
    """Raised when the exchange changed between read and commit."""
    status_code = 409
    code = 'concurrency_conflict'


__all__ = [
    'ExchangeServiceError',
    'ExchangeValidationError',
    'ExchangeNotFoundError',
    'ExchangeLineNotFoundError',
    'NotExchangePartyError',
    'InvalidTransitionError',
    'AmountExceedsDueError',
    'ConcurrencyConflictError',
    'InsufficientStockError',
]
