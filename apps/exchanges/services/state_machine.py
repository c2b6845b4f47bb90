"""
Exchange state machine.

Single entry point for every lifecycle action. An action runs inside one
transaction: the exchange row is locked, the transition table checked, the
ledger effects applied and the new state committed with a compare-and-swap
on ``version``. Any failure rolls back everything, stock movements included.

    draft -> pending_acceptance -> accepted -> payment_confirmed -> closed
    draft -> pending_payment (manual partner) -> payment_confirmed -> closed
    draft | pending_acceptance -> cancelled
    pending_acceptance -> refused
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.exchanges.models import (
    Exchange,
    ExchangeAction,
    ExchangeDirection,
    ExchangeStatus,
)
from apps.establishments.services import get_principal_establishment
from apps.inventory.services import create_lot, credit, debit_many, match_or_create_product
from apps.notifications.models import NotificationKind, NotificationPriority
from apps.notifications.services import notify

from .context import ExchangeContext
from .exceptions import (
    ConcurrencyConflictError,
    ExchangeValidationError,
    InvalidTransitionError,
    NotExchangePartyError,
)
from .exchange_management import check_version, lock_exchange, save_with_version
from .history import record_event
from .settlement import apply_payment, ensure_closable

logger = logging.getLogger(__name__)

OWNER = 'owner'
COUNTERPARTY = 'counterparty'


@dataclass(frozen=True)
class Transition:
    sources: frozenset
    role: str
    handler: Callable[[ExchangeContext, Exchange, Mapping[str, Any]], list]


# =============================================================================
# Ledger effects
# =============================================================================

def _quantities_by_lot(exchange: Exchange) -> dict:
    quantities = defaultdict(int)
    for line in exchange.lines.all():
        if line.stock_lot_id is None:
            raise ExchangeValidationError(
                f"Line {line.product_name} of {exchange.reference} has no stock lot"
            )
        quantities[line.stock_lot_id] += line.quantity
    return dict(quantities)


def _restore_stock(context: ExchangeContext, exchange: Exchange, action: str) -> None:
    """Credit back what ``send`` debited. Keys make a replay a no-op."""
    for lot_id, quantity in sorted(_quantities_by_lot(exchange).items()):
        credit(
            lot_id=lot_id,
            quantity=quantity,
            reason=f"Stock returned: exchange {exchange.reference} {action}",
            idempotency_key=f"{exchange.pk}:{action}:{lot_id}",
            user=context.user,
        )


def _exchange_link(exchange: Exchange) -> str:
    return f"/api/exchanges/{exchange.pk}/"


def _deliver_to_partner(context: ExchangeContext, exchange: Exchange) -> None:
    """Create the sent goods as new lots in the linked partner's inventory."""
    destination = get_principal_establishment(account=exchange.counterparty_account)
    for line in exchange.lines.order_by('position'):
        product = match_or_create_product(
            establishment=destination,
            name=line.product_name,
            code=line.product_code,
        )
        create_lot(
            establishment=destination,
            product=product,
            quantity=line.quantity,
            unit_price=line.unit_price,
            lot_number=line.lot_number or f"{exchange.reference}-{line.position + 1}",
            expiration_date=line.expiration_date,
            reason=f"Received from {exchange.establishment.name} (exchange {exchange.reference})",
            idempotency_key=f"{exchange.pk}:close:{line.pk}",
            user=context.user,
        )


# =============================================================================
# Handlers: mutate the locked instance, return the fields to persist
# =============================================================================

def _send(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    if not exchange.lines.exists():
        raise ExchangeValidationError("Add at least one line before sending")
    if exchange.partner_id is None:
        raise ExchangeValidationError("Choose a partner before sending")

    if exchange.direction == ExchangeDirection.OUTGOING:
        debit_many(
            quantities=_quantities_by_lot(exchange),
            reason=f"Exchange {exchange.reference} sent to {exchange.partner.name}",
            idempotency_prefix=f"{exchange.pk}:send",
            user=context.user,
        )

    exchange.status = (
        ExchangeStatus.PENDING_PAYMENT if exchange.is_manual
        else ExchangeStatus.PENDING_ACCEPTANCE
    )
    exchange.sent_at = exchange.sent_at or timezone.now()

    if not exchange.is_manual:
        notify(
            recipient=exchange.counterparty_account,
            kind=NotificationKind.EXCHANGE_RECEIVED,
            title=f"New exchange {exchange.reference}",
            message=(
                f"{exchange.establishment.name} sent you an exchange of "
                f"{exchange.total_articles} article(s)"
            ),
            link=_exchange_link(exchange),
            priority=NotificationPriority.HIGH,
        )
    return ['status', 'sent_at']


def _accept(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    now = timezone.now()
    exchange.status = ExchangeStatus.ACCEPTED
    exchange.accepted_at = exchange.accepted_at or now
    exchange.received_at = exchange.received_at or now

    notify(
        recipient=exchange.establishment.account,
        kind=NotificationKind.EXCHANGE_ACCEPTED,
        title=f"Exchange {exchange.reference} accepted",
        message=f"{exchange.partner.name} accepted exchange {exchange.reference}",
        link=_exchange_link(exchange),
    )
    return ['status', 'accepted_at', 'received_at']


def _refuse(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    refusal_reason = (payload.get('refusal_reason') or '').strip()
    if not refusal_reason:
        raise ExchangeValidationError("A refusal reason is required")

    if exchange.has_debited_stock:
        _restore_stock(context, exchange, 'refused')

    exchange.status = ExchangeStatus.REFUSED
    exchange.refused_at = exchange.refused_at or timezone.now()
    exchange.refusal_reason = refusal_reason

    notify(
        recipient=exchange.establishment.account,
        kind=NotificationKind.EXCHANGE_REFUSED,
        title=f"Exchange {exchange.reference} refused",
        message=f"{exchange.partner.name} refused exchange {exchange.reference}: {refusal_reason}",
        link=_exchange_link(exchange),
        priority=NotificationPriority.HIGH,
    )
    return ['status', 'refused_at', 'refusal_reason']


def _confirm_payment(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    if payload.get('amount') is None:
        raise ExchangeValidationError("An amount is required to confirm a payment")

    apply_payment(
        exchange,
        amount=payload['amount'],
        method=payload.get('payment_method'),
        note=payload.get('note') or '',
    )
    exchange.status = ExchangeStatus.PAYMENT_CONFIRMED
    exchange.paid_at = exchange.paid_at or timezone.now()
    return ['status', 'amount_paid', 'payment_method', 'payment_note', 'paid_at']


def _close(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    ensure_closable(
        exchange,
        require_full_settlement=settings.EXCHANGES_REQUIRE_FULL_SETTLEMENT,
    )
    now = timezone.now()

    if exchange.direction == ExchangeDirection.INCOMING:
        for line in exchange.lines.select_related('product'):
            create_lot(
                establishment=exchange.establishment,
                product=line.product,
                quantity=line.quantity,
                unit_price=line.unit_price,
                lot_number=line.lot_number or f"{exchange.reference}-{line.position + 1}",
                expiration_date=line.expiration_date,
                reason=f"Received from {exchange.partner.name} (exchange {exchange.reference})",
                idempotency_key=f"{exchange.pk}:close:{line.pk}",
                user=context.user,
            )
        exchange.received_at = exchange.received_at or now
    elif exchange.counterparty_account_id is not None:
        _deliver_to_partner(context, exchange)

    exchange.status = ExchangeStatus.CLOSED
    exchange.closed_at = exchange.closed_at or now
    return ['status', 'closed_at', 'received_at']


def _cancel(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    was_sent = exchange.status != ExchangeStatus.DRAFT
    if exchange.has_debited_stock:
        _restore_stock(context, exchange, 'cancelled')

    exchange.status = ExchangeStatus.CANCELLED
    exchange.cancelled_at = exchange.cancelled_at or timezone.now()

    if was_sent and not exchange.is_manual:
        notify(
            recipient=exchange.counterparty_account,
            kind=NotificationKind.EXCHANGE_CANCELLED,
            title=f"Exchange {exchange.reference} cancelled",
            message=f"{exchange.establishment.name} cancelled exchange {exchange.reference}",
            link=_exchange_link(exchange),
        )
    return ['status', 'cancelled_at']


def _delete(context: ExchangeContext, exchange: Exchange, payload: Mapping[str, Any]) -> list:
    # Lines cascade; the reference stays consumed in the sequence
    exchange.delete()
    return []


TRANSITIONS = {
    ExchangeAction.SEND: Transition(
        frozenset({ExchangeStatus.DRAFT}), OWNER, _send),
    ExchangeAction.ACCEPT: Transition(
        frozenset({ExchangeStatus.PENDING_ACCEPTANCE}), COUNTERPARTY, _accept),
    ExchangeAction.REFUSE: Transition(
        frozenset({ExchangeStatus.PENDING_ACCEPTANCE}), COUNTERPARTY, _refuse),
    ExchangeAction.CONFIRM_PAYMENT: Transition(
        frozenset({
            ExchangeStatus.PENDING_PAYMENT,
            ExchangeStatus.ACCEPTED,
            ExchangeStatus.PAYMENT_CONFIRMED,
        }),
        OWNER,
        _confirm_payment,
    ),
    ExchangeAction.CLOSE: Transition(
        frozenset({ExchangeStatus.PAYMENT_CONFIRMED}), OWNER, _close),
    ExchangeAction.CANCEL: Transition(
        frozenset({ExchangeStatus.DRAFT, ExchangeStatus.PENDING_ACCEPTANCE}), OWNER, _cancel),
    ExchangeAction.DELETE: Transition(
        frozenset({ExchangeStatus.DRAFT}), OWNER, _delete),
}


def parse_action(value: str) -> ExchangeAction:
    try:
        action = ExchangeAction(value)
    except ValueError:
        raise ExchangeValidationError(f"Unknown action: {value}")
    if action not in TRANSITIONS:
        raise ExchangeValidationError(f"Unknown action: {value}")
    return action


def allowed_actions(context: ExchangeContext, exchange: Exchange) -> list[str]:
    """Actions the caller could perform on the exchange right now."""
    allowed = []
    for action, transition in TRANSITIONS.items():
        if exchange.status not in transition.sources:
            continue
        if transition.role == OWNER and context.is_owner(exchange):
            allowed.append(action.value)
        elif transition.role == COUNTERPARTY and context.is_counterparty(exchange):
            allowed.append(action.value)
    return allowed


@transaction.atomic
def _perform_once(
    *,
    context: ExchangeContext,
    exchange_id: UUID,
    action: ExchangeAction,
    payload: Mapping[str, Any],
    expected_version: Optional[int],
) -> Optional[Exchange]:
    exchange = lock_exchange(context=context, exchange_id=exchange_id)
    check_version(exchange, expected_version)

    transition = TRANSITIONS[action]
    if transition.role == OWNER and not context.is_owner(exchange):
        raise NotExchangePartyError(
            f"Only the issuing establishment can {action.label.lower()} {exchange.reference}"
        )
    if transition.role == COUNTERPARTY and not context.is_counterparty(exchange):
        raise NotExchangePartyError(
            f"Only the receiving partner can {action.label.lower()} {exchange.reference}"
        )

    status_before = exchange.status
    if status_before not in transition.sources:
        raise InvalidTransitionError(
            f"Cannot {action.label.lower()} exchange {exchange.reference} "
            f"in status {status_before}",
            action=action.value,
            status=status_before,
        )

    if action == ExchangeAction.DELETE:
        record_event(
            exchange=exchange,
            action=action,
            actor=context.user,
            status_before=status_before,
            description=f"Draft {exchange.reference} deleted",
            keep_link=False,
        )
        transition.handler(context, exchange, payload)
        logger.info("Exchange %s deleted by %s", exchange.reference, context.user.email)
        return None

    fields = transition.handler(context, exchange, payload)
    save_with_version(exchange, fields)

    event_payload = {}
    if action == ExchangeAction.CONFIRM_PAYMENT:
        event_payload = {
            'amount': str(payload.get('amount')),
            'amount_paid': str(exchange.amount_paid),
            'payment_method': exchange.payment_method,
        }
    elif action == ExchangeAction.REFUSE:
        event_payload = {'refusal_reason': exchange.refusal_reason}

    record_event(
        exchange=exchange,
        action=action,
        actor=context.user,
        status_before=status_before,
        description=f"{action.label}: {status_before} -> {exchange.status}",
        payload=event_payload,
    )
    logger.info(
        "Exchange %s: %s (%s -> %s) by %s",
        exchange.reference, action.value, status_before, exchange.status, context.user.email,
    )
    return exchange


def perform_action(
    *,
    context: ExchangeContext,
    exchange_id: UUID,
    action: str,
    payload: Optional[Mapping[str, Any]] = None,
    expected_version: Optional[int] = None,
) -> Optional[Exchange]:
    """
    Apply a lifecycle action to an exchange.

    A lost compare-and-swap is retried once on a fresh read, unless the
    caller pinned ``expected_version``: a stale pinned version is reported
    straight away.

    Args:
        context: Caller and their principal establishment
        exchange_id: Target exchange
        action: One of ``send``, ``accept``, ``refuse``, ``confirm_payment``,
            ``close``, ``cancel``, ``delete``
        payload: ``refusal_reason`` for refuse; ``amount``,
            ``payment_method`` and ``note`` for confirm_payment
        expected_version: Version the caller last saw

    Returns:
        The updated exchange, or None after ``delete``

    Raises:
        ExchangeValidationError: Unknown action or missing payload
        ExchangeNotFoundError: Exchange not visible to the caller
        NotExchangePartyError: Caller's side may not perform this action
        InvalidTransitionError: Action not allowed from the current status
        InsufficientStockError: A lot ran short while sending
        AmountExceedsDueError: Payment above the remaining balance
        NoPrincipalEstablishmentError: Linked partner has no establishment to
            receive closed outgoing goods
        ConcurrencyConflictError: Exchange changed under the caller
    """
    action = parse_action(action)
    payload = payload or {}
    attempts = 1 if expected_version is not None else 2

    for attempt in range(1, attempts + 1):
        try:
            return _perform_once(
                context=context,
                exchange_id=exchange_id,
                action=action,
                payload=payload,
                expected_version=expected_version,
            )
        except ConcurrencyConflictError:
            if attempt >= attempts:
                raise
            logger.warning(
                "Retrying %s on exchange %s after a concurrent update",
                action.value, exchange_id,
            )
