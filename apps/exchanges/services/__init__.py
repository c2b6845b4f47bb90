"""
Exchanges app services layer.

Views call these functions with an explicit ``ExchangeContext``; every
lifecycle action goes through ``perform_action``.
"""

from .exceptions import (
    ExchangeServiceError,
    ExchangeValidationError,
    ExchangeNotFoundError,
    ExchangeLineNotFoundError,
    NotExchangePartyError,
    InvalidTransitionError,
    AmountExceedsDueError,
    ConcurrencyConflictError,
    InsufficientStockError,
)

from .context import (
    ExchangeContext,
    build_context,
)

from .references import (
    issue_reference,
    format_reference,
)

from .exchange_management import (
    create_exchange,
    add_line,
    update_line,
    remove_line,
    get_exchange,
    list_exchanges,
)

from .settlement import (
    apply_payment,
    remaining_balance,
    is_fully_settled,
)

from .state_machine import (
    TRANSITIONS,
    perform_action,
    allowed_actions,
)

from .history import (
    record_event,
    get_history,
)


__all__ = [
    # Exceptions
    'ExchangeServiceError',
    'ExchangeValidationError',
    'ExchangeNotFoundError',
    'ExchangeLineNotFoundError',
    'NotExchangePartyError',
    'InvalidTransitionError',
    'AmountExceedsDueError',
    'ConcurrencyConflictError',
    'InsufficientStockError',

    # Context
    'ExchangeContext',
    'build_context',

    # References
    'issue_reference',
    'format_reference',

    # Aggregate
    'create_exchange',
    'add_line',
    'update_line',
    'remove_line',
    'get_exchange',
    'list_exchanges',

    # Settlement
    'apply_payment',
    'remaining_balance',
    'is_fully_settled',

    # State machine
    'TRANSITIONS',
    'perform_action',
    'allowed_actions',

    # History
    'record_event',
    'get_history',
]
