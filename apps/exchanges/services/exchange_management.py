"""
Exchange aggregate management.

Creation, draft line editing and read access. Lines can only change while
the exchange is a draft; totals are recomputed after every line mutation and
each committed change bumps ``version`` through a compare-and-swap.
"""

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Max, Q, QuerySet
from django.utils import timezone

from apps.establishments.services import get_establishment
from apps.exchanges.models import (
    Exchange,
    ExchangeAction,
    ExchangeDirection,
    ExchangeLine,
    ExchangeStatus,
)
from apps.inventory.models import StockLot
from apps.inventory.services import get_product, get_stock_lot

from .context import ExchangeContext
from .exceptions import (
    ConcurrencyConflictError,
    ExchangeLineNotFoundError,
    ExchangeNotFoundError,
    ExchangeValidationError,
    InsufficientStockError,
    InvalidTransitionError,
    NotExchangePartyError,
)
from .history import record_event
from .references import issue_reference
from .settlement import to_amount

logger = logging.getLogger(__name__)

TOTAL_FIELDS = ['total_articles', 'total_quantity', 'estimated_value', 'amount_due']


# =============================================================================
# Aggregate access
# =============================================================================

def _visibility(context: ExchangeContext) -> Q:
    # The counterparty never sees the owner's drafts
    return Q(establishment=context.establishment) | (
        Q(counterparty_account=context.user) & ~Q(status=ExchangeStatus.DRAFT)
    )


def get_exchange(*, context: ExchangeContext, exchange_id: UUID) -> Exchange:
    """
    Load an exchange visible to the caller, with its lines.

    Raises:
        ExchangeNotFoundError: If it doesn't exist or belongs to someone else
    """
    try:
        return (
            Exchange.objects
            .filter(_visibility(context))
            .select_related('establishment', 'partner', 'counterparty_account', 'created_by')
            .prefetch_related('lines')
            .get(pk=exchange_id)
        )
    except (Exchange.DoesNotExist, ValueError, DjangoValidationError):
        raise ExchangeNotFoundError(f"Exchange {exchange_id} not found")


def lock_exchange(*, context: ExchangeContext, exchange_id: UUID) -> Exchange:
    """
    Load an exchange with a row lock held until the end of the transaction.

    Raises:
        ExchangeNotFoundError: If it doesn't exist or is not visible to the caller
    """
    try:
        exchange = Exchange.objects.select_for_update().get(pk=exchange_id)
    except (Exchange.DoesNotExist, ValueError, DjangoValidationError):
        raise ExchangeNotFoundError(f"Exchange {exchange_id} not found")

    visible = context.is_owner(exchange) or (
        context.is_counterparty(exchange) and exchange.status != ExchangeStatus.DRAFT
    )
    if not visible:
        raise ExchangeNotFoundError(f"Exchange {exchange_id} not found")
    return exchange


def check_version(exchange: Exchange, expected_version: Optional[int]) -> None:
    if expected_version is not None and int(expected_version) != exchange.version:
        logger.warning(
            "Stale version on %s: expected %s, current %s",
            exchange.reference, expected_version, exchange.version,
        )
        raise ConcurrencyConflictError(
            f"Exchange {exchange.reference} was modified "
            f"(version {exchange.version}, expected {expected_version})"
        )


def save_with_version(exchange: Exchange, fields: Iterable[str]) -> None:
    """
    Persist ``fields`` only if nobody committed since the exchange was read.

    Raises:
        ConcurrencyConflictError: If the stored version moved on
    """
    values = {name: getattr(exchange, name) for name in fields}
    values['updated_at'] = timezone.now()

    updated = (
        Exchange.objects
        .filter(pk=exchange.pk, version=exchange.version)
        .update(version=exchange.version + 1, **values)
    )
    if not updated:
        logger.warning("Concurrent update detected on %s", exchange.reference)
        raise ConcurrencyConflictError(
            f"Exchange {exchange.reference} was modified concurrently"
        )

    exchange.version += 1
    exchange.updated_at = values['updated_at']


def require_owner(context: ExchangeContext, exchange: Exchange, action: str) -> None:
    if not context.is_owner(exchange):
        raise NotExchangePartyError(
            f"Only the issuing establishment can {action} {exchange.reference}"
        )


def _require_draft(exchange: Exchange) -> None:
    if exchange.status != ExchangeStatus.DRAFT:
        raise InvalidTransitionError(
            f"Lines of {exchange.reference} are frozen once sent",
            action=ExchangeAction.EDIT_LINES,
            status=exchange.status,
        )


# =============================================================================
# Lines
# =============================================================================

def _to_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise ExchangeValidationError(f"Invalid quantity: {value!r}")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ExchangeValidationError(f"Invalid quantity: {value!r}")
    if quantity <= 0 or (quantity != value and str(quantity) != str(value)):
        raise ExchangeValidationError("Quantity must be a positive integer")
    return quantity


def _to_unit_price(value: Any):
    price = to_amount(value)
    if price < 0:
        raise ExchangeValidationError("Unit price cannot be negative")
    return price


def _ensure_available(lot: StockLot, quantity: int) -> None:
    if quantity > lot.quantity_available:
        raise InsufficientStockError(
            f"Insufficient stock for {lot.product.name} "
            f"(available: {lot.quantity_available}, requested: {quantity})",
            lot_id=lot.pk,
            requested=quantity,
            available=lot.quantity_available,
        )


def _build_line(
    *,
    context: ExchangeContext,
    direction: str,
    data: Mapping[str, Any],
    position: int,
) -> ExchangeLine:
    """Resolve a line payload against my inventory (outgoing) or catalog (incoming)."""
    quantity = _to_quantity(data.get('quantity'))
    unit_price = data.get('unit_price')
    expiration_date: Optional[date] = data.get('expiration_date')

    if direction == ExchangeDirection.OUTGOING:
        lot_id = data.get('stock_lot_id')
        if not lot_id:
            raise ExchangeValidationError("Outgoing lines must reference a stock lot")

        lot = get_stock_lot(establishment=context.establishment, lot_id=lot_id)
        _ensure_available(lot, quantity)

        return ExchangeLine(
            position=position,
            stock_lot=lot,
            product=lot.product,
            product_name=lot.product.name,
            product_code=lot.product.code,
            lot_number=lot.lot_number or None,
            expiration_date=lot.expiration_date,
            quantity=quantity,
            unit_price=lot.unit_sale_price if unit_price is None else _to_unit_price(unit_price),
            note=data.get('note') or None,
        )

    product_id = data.get('product_id')
    if not product_id:
        raise ExchangeValidationError("Incoming lines must reference a product")

    product = get_product(establishment=context.establishment, product_id=product_id)

    return ExchangeLine(
        position=position,
        product=product,
        product_name=product.name,
        product_code=product.code,
        lot_number=data.get('lot_number') or None,
        expiration_date=expiration_date,
        quantity=quantity,
        unit_price=0 if unit_price is None else _to_unit_price(unit_price),
        note=data.get('note') or None,
    )


def _refresh_totals(exchange: Exchange) -> None:
    exchange.recompute_totals(list(exchange.lines.all()))


def _get_line(exchange: Exchange, line_id: UUID) -> ExchangeLine:
    try:
        return exchange.lines.select_related('stock_lot').get(pk=line_id)
    except (ExchangeLine.DoesNotExist, ValueError, DjangoValidationError):
        raise ExchangeLineNotFoundError(
            f"Line {line_id} not found on {exchange.reference}"
        )


@transaction.atomic
def add_line(
    *,
    context: ExchangeContext,
    exchange_id: UUID,
    data: Mapping[str, Any],
    expected_version: Optional[int] = None,
) -> ExchangeLine:
    """
    Append a line to a draft.

    Raises:
        InvalidTransitionError: If the exchange is no longer a draft
        InsufficientStockError: If an outgoing quantity exceeds the lot
    """
    exchange = lock_exchange(context=context, exchange_id=exchange_id)
    require_owner(context, exchange, 'edit')
    check_version(exchange, expected_version)
    _require_draft(exchange)

    last_position = exchange.lines.aggregate(last=Max('position'))['last']
    line = _build_line(
        context=context,
        direction=exchange.direction,
        data=data,
        position=0 if last_position is None else last_position + 1,
    )
    line.exchange = exchange
    line.save()

    _refresh_totals(exchange)
    save_with_version(exchange, TOTAL_FIELDS)

    record_event(
        exchange=exchange,
        action=ExchangeAction.EDIT_LINES,
        actor=context.user,
        status_before=exchange.status,
        description=f"Line added: {line.product_name} x{line.quantity}",
        payload={'line_id': str(line.pk), 'op': 'add'},
    )
    return line


@transaction.atomic
def update_line(
    *,
    context: ExchangeContext,
    exchange_id: UUID,
    line_id: UUID,
    data: Mapping[str, Any],
    expected_version: Optional[int] = None,
) -> ExchangeLine:
    """
    Change quantity, price, note (and lot details on incoming lines) of a draft line.

    Outgoing quantities are checked against the lot as it is now, not as it
    was when the line was added.
    """
    exchange = lock_exchange(context=context, exchange_id=exchange_id)
    require_owner(context, exchange, 'edit')
    check_version(exchange, expected_version)
    _require_draft(exchange)

    line = _get_line(exchange, line_id)

    if 'quantity' in data and data['quantity'] is not None:
        line.quantity = _to_quantity(data['quantity'])
    if 'unit_price' in data and data['unit_price'] is not None:
        line.unit_price = _to_unit_price(data['unit_price'])
    if 'note' in data:
        line.note = data['note'] or None

    if exchange.direction == ExchangeDirection.INCOMING:
        if 'lot_number' in data:
            line.lot_number = data['lot_number'] or None
        if 'expiration_date' in data:
            line.expiration_date = data['expiration_date']
    else:
        lot = StockLot.objects.select_related('product').get(pk=line.stock_lot_id)
        _ensure_available(lot, line.quantity)

    line.save()

    _refresh_totals(exchange)
    save_with_version(exchange, TOTAL_FIELDS)

    record_event(
        exchange=exchange,
        action=ExchangeAction.EDIT_LINES,
        actor=context.user,
        status_before=exchange.status,
        description=f"Line updated: {line.product_name} x{line.quantity}",
        payload={'line_id': str(line.pk), 'op': 'update'},
    )
    return line


@transaction.atomic
def remove_line(
    *,
    context: ExchangeContext,
    exchange_id: UUID,
    line_id: UUID,
    expected_version: Optional[int] = None,
) -> Exchange:
    """Remove a draft line. An empty draft is allowed; it cannot be sent."""
    exchange = lock_exchange(context=context, exchange_id=exchange_id)
    require_owner(context, exchange, 'edit')
    check_version(exchange, expected_version)
    _require_draft(exchange)

    line = _get_line(exchange, line_id)
    description = f"Line removed: {line.product_name} x{line.quantity}"
    removed_id = str(line.pk)
    line.delete()

    _refresh_totals(exchange)
    save_with_version(exchange, TOTAL_FIELDS)

    record_event(
        exchange=exchange,
        action=ExchangeAction.EDIT_LINES,
        actor=context.user,
        status_before=exchange.status,
        description=description,
        payload={'line_id': removed_id, 'op': 'remove'},
    )
    return exchange


# =============================================================================
# Creation and listing
# =============================================================================

@transaction.atomic
def create_exchange(
    *,
    context: ExchangeContext,
    partner_id: UUID,
    direction: str,
    lines: list[Mapping[str, Any]],
    reason: str = '',
    note: str = '',
) -> Exchange:
    """
    Create a draft exchange with a fresh reference.

    Args:
        context: Caller and their principal establishment
        partner_id: Establishment of the caller's directory on the other side
        direction: ``outgoing`` (I give) or ``incoming`` (I receive)
        lines: Line payloads; outgoing lines carry ``stock_lot_id``,
            incoming lines ``product_id``
        reason: Free text motive
        note: Free text note

    Returns:
        The draft, totals computed

    Raises:
        ExchangeValidationError: Unknown direction, no lines, bad quantity or
            price, or partner is my own establishment
        EstablishmentNotFoundError: Partner is not in my directory
        StockLotNotFoundError / ProductNotFoundError: Line references
            something outside my inventory
        InsufficientStockError: Outgoing quantity above the lot's stock
    """
    if direction not in ExchangeDirection.values:
        raise ExchangeValidationError(f"Unknown direction: {direction}")
    if not lines:
        raise ExchangeValidationError("An exchange needs at least one line")

    partner = get_establishment(account=context.user, establishment_id=partner_id)
    if partner.pk == context.establishment.pk:
        raise ExchangeValidationError("Partner must be another establishment")

    exchange = Exchange(
        reference=issue_reference(establishment=context.establishment),
        establishment=context.establishment,
        partner=partner,
        counterparty_account=partner.linked_account if partner.is_linked else None,
        is_manual=not partner.is_linked,
        direction=direction,
        reason=reason or '',
        note=note or '',
        created_by=context.user,
    )
    exchange.save()

    built = []
    for position, data in enumerate(lines):
        line = _build_line(
            context=context,
            direction=direction,
            data=data,
            position=position,
        )
        line.exchange = exchange
        line.save()
        built.append(line)

    exchange.recompute_totals(built)
    exchange.save(update_fields=TOTAL_FIELDS + ['updated_at'])

    record_event(
        exchange=exchange,
        action=ExchangeAction.CREATE,
        actor=context.user,
        description=f"Exchange {exchange.reference} created with {len(built)} line(s)",
        payload={'direction': direction, 'partner_id': str(partner.pk)},
    )
    logger.info(
        "Exchange %s created by %s (%s, %s lines)",
        exchange.reference, context.user.email, direction, len(built),
    )
    return exchange


def list_exchanges(
    *,
    context: ExchangeContext,
    received: bool = False,
    search: str = '',
    status: Optional[str] = None,
    direction: Optional[str] = None,
    partner_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> QuerySet[Exchange]:
    """
    List the caller's exchanges, newest first.

    ``received=True`` lists exchanges other establishments addressed to the
    caller's account instead of the ones the caller issued.
    """
    if received:
        queryset = Exchange.objects.filter(
            counterparty_account=context.user
        ).exclude(status=ExchangeStatus.DRAFT)
    else:
        queryset = Exchange.objects.filter(establishment=context.establishment)

    if search:
        queryset = queryset.filter(
            Q(reference__icontains=search) |
            Q(reason__icontains=search) |
            Q(partner__name__icontains=search) |
            Q(establishment__name__icontains=search)
        )

    if status:
        queryset = queryset.filter(status=status)

    if direction:
        queryset = queryset.filter(direction=direction)

    if partner_id:
        queryset = queryset.filter(partner_id=partner_id)

    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)

    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    return (
        queryset
        .select_related('establishment', 'partner', 'counterparty_account')
        .order_by('-created_at')
    )
