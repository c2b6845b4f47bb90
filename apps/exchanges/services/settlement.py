"""
Settlement bookkeeping for exchanges.

Payments accumulate on the exchange: ``0 <= amount_paid <= amount_due`` at
all times. These helpers only mutate the in-memory instance; the state
machine persists them together with the status change.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from apps.exchanges.models import Exchange, PaymentMethod

from .exceptions import AmountExceedsDueError, ExchangeValidationError, InvalidTransitionError

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def to_amount(value) -> Decimal:
    """Parse a money amount to two decimals."""
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise ExchangeValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ExchangeValidationError(f"Invalid amount: {value!r}")
    return amount


def remaining_balance(exchange: Exchange) -> Decimal:
    return exchange.amount_due - exchange.amount_paid


def is_fully_settled(exchange: Exchange) -> bool:
    return exchange.amount_paid >= exchange.amount_due


def apply_payment(
    exchange: Exchange,
    *,
    amount,
    method: Optional[str] = None,
    note: str = '',
) -> Decimal:
    """
    Add a payment to ``amount_paid``.

    Returns:
        The new ``amount_paid``

    Raises:
        ExchangeValidationError: If the amount is not positive (zero only
            settles an exchange with nothing due) or the method is unknown
        AmountExceedsDueError: If the amount is above the remaining balance
    """
    amount = to_amount(amount)
    remaining = remaining_balance(exchange)

    if amount < 0 or (amount == 0 and exchange.amount_due > 0):
        raise ExchangeValidationError("Payment amount must be positive")

    if amount > remaining:
        logger.warning(
            "Overpayment rejected on %s: %s offered, %s remaining",
            exchange.reference, amount, remaining,
        )
        raise AmountExceedsDueError(
            f"Payment of {amount} exceeds the remaining balance of {remaining}",
            amount=amount,
            remaining=remaining,
        )

    if method:
        if method not in PaymentMethod.values:
            raise ExchangeValidationError(f"Unknown payment method: {method}")
        exchange.payment_method = method

    if note:
        exchange.payment_note = note

    exchange.amount_paid = exchange.amount_paid + amount
    logger.info(
        "Payment of %s recorded on %s (%s / %s)",
        amount, exchange.reference, exchange.amount_paid, exchange.amount_due,
    )
    return exchange.amount_paid


def ensure_closable(exchange: Exchange, *, require_full_settlement: bool) -> None:
    """
    Raises:
        InvalidTransitionError: If full settlement is required and a balance remains
    """
    if require_full_settlement and not is_fully_settled(exchange):
        raise InvalidTransitionError(
            f"Cannot close {exchange.reference}: "
            f"{remaining_balance(exchange)} still to be paid",
            action='close',
            status=exchange.status,
        )
