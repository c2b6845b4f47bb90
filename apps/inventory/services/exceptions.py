"""
Domain exceptions for the inventory app.

These represent stock-ledger rule violations and are converted to HTTP
responses by the views that call the ledger.
"""


class InventoryServiceError(Exception):
    """Base exception for all inventory service errors."""
    status_code = 400
    code = 'inventory_error'


class StockLotNotFoundError(InventoryServiceError):
    """Raised when a stock lot does not exist or belongs to another establishment."""
    status_code = 404
    code = 'not_found'


class ProductNotFoundError(InventoryServiceError):
    """Raised when a product does not exist in the establishment's catalog."""
    status_code = 404
    code = 'not_found'


class InvalidQuantityError(InventoryServiceError):
    """Raised when a ledger operation is given a non-positive quantity."""
    code = 'validation_error'


class InsufficientStockError(InventoryServiceError):
    """Raised when a lot holds less than the quantity requested at debit time."""
    status_code = 409
    code = 'insufficient_stock'

    def __init__(self, message, *, lot_id=None, requested=None, available=None):
        super().__init__(message)
        self.lot_id = lot_id
        self.requested = requested
        self.available = available

    @property
    def payload(self):
        return {
            'lot_id': str(self.lot_id) if self.lot_id else None,
            'requested': self.requested,
            'available': self.available,
        }
