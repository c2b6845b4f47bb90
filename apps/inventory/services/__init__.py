"""
Inventory app services layer.

The stock ledger is the only writer of lot quantities; catalog functions are
read-only lookups used by the exchange workflow and the search screens.
"""

from .exceptions import (
    InventoryServiceError,
    StockLotNotFoundError,
    ProductNotFoundError,
    InvalidQuantityError,
    InsufficientStockError,
)

from .stock_ledger import (
    debit,
    debit_many,
    credit,
    create_lot,
)

from .catalog import (
    search_products,
    search_stock_lots,
    get_stock_lot,
    get_product,
    match_or_create_product,
)


__all__ = [
    # Exceptions
    'InventoryServiceError',
    'StockLotNotFoundError',
    'ProductNotFoundError',
    'InvalidQuantityError',
    'InsufficientStockError',

    # Stock ledger
    'debit',
    'debit_many',
    'credit',
    'create_lot',

    # Catalog
    'search_products',
    'search_stock_lots',
    'get_stock_lot',
    'get_product',
    'match_or_create_product',
]
