"""
Stock ledger.

The only code path allowed to change ``StockLot.quantity_available``. Lots are
shared by sales, exchanges and any other inventory-affecting subsystem, so:

- debits are conditional updates (``qty = qty - n WHERE qty >= n``), never
  read-then-write;
- multi-lot operations lock rows in ascending id order;
- every change writes a ``StockMovement``; movements may carry an
  idempotency key so that a replayed operation is applied at most once.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone

from apps.accounts.models import User
from apps.establishments.models import Establishment
from apps.inventory.models import MovementKind, Product, StockLot, StockMovement

from .exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    StockLotNotFoundError,
)

logger = logging.getLogger(__name__)


def _check_quantity(quantity: int) -> None:
    if quantity is None or int(quantity) <= 0:
        raise InvalidQuantityError(f"Quantity must be positive, got {quantity}")


def _lock_lot(lot_id) -> StockLot:
    try:
        return StockLot.objects.select_for_update().get(pk=lot_id)
    except (StockLot.DoesNotExist, ValueError):
        raise StockLotNotFoundError(f"Stock lot {lot_id} not found")


def _already_applied(idempotency_key: Optional[str]) -> bool:
    return bool(idempotency_key) and StockMovement.objects.filter(
        idempotency_key=idempotency_key
    ).exists()


@transaction.atomic
def debit(
    *,
    lot_id: UUID,
    quantity: int,
    reason: str = '',
    idempotency_key: Optional[str] = None,
    user: Optional[User] = None,
) -> StockLot:
    """
    Atomically check ``available >= quantity`` and decrement.

    Args:
        lot_id: Lot to debit
        quantity: Units to remove (> 0)
        reason: Journal text
        idempotency_key: If a movement with this key exists the debit is
            considered done and nothing changes
        user: Account performing the operation

    Returns:
        The lot, refreshed after the update

    Raises:
        InvalidQuantityError: If quantity <= 0
        StockLotNotFoundError: If the lot doesn't exist
        InsufficientStockError: If the lot holds fewer than ``quantity`` units
    """
    _check_quantity(quantity)
    lot = _lock_lot(lot_id)

    if _already_applied(idempotency_key):
        logger.info("Debit %s already applied, skipping", idempotency_key)
        return lot

    updated = (
        StockLot.objects
        .filter(pk=lot.pk, quantity_available__gte=quantity)
        .update(
            quantity_available=F('quantity_available') - quantity,
            updated_at=timezone.now(),
        )
    )
    if not updated:
        lot.refresh_from_db(fields=['quantity_available'])
        logger.warning(
            "Insufficient stock on lot %s: requested %s, available %s",
            lot.pk, quantity, lot.quantity_available,
        )
        raise InsufficientStockError(
            f"Insufficient stock for {lot.product.name} "
            f"(available: {lot.quantity_available}, requested: {quantity})",
            lot_id=lot.pk,
            requested=quantity,
            available=lot.quantity_available,
        )

    lot.refresh_from_db(fields=['quantity_available', 'updated_at'])
    StockMovement.objects.create(
        lot=lot,
        kind=MovementKind.EXIT,
        quantity=quantity,
        quantity_before=lot.quantity_available + quantity,
        quantity_after=lot.quantity_available,
        reason=reason[:255],
        idempotency_key=idempotency_key,
        created_by=user,
    )
    logger.info("Debited %s from lot %s (%s)", quantity, lot.pk, reason)
    return lot


def debit_many(
    *,
    quantities: Mapping[UUID, int],
    reason: str = '',
    idempotency_prefix: Optional[str] = None,
    user: Optional[User] = None,
) -> list[StockLot]:
    """
    Debit several lots as one all-or-nothing unit.

    Quantities for the same lot must already be summed by the caller. Lots are
    locked and debited in ascending id order so that two multi-lot operations
    never wait on each other in opposite orders. If any debit fails, every
    debit of this call is rolled back and the error propagates.

    Args:
        quantities: Mapping of lot id to units to remove
        reason: Journal text
        idempotency_prefix: Movement keys become ``"<prefix>:<lot id>"``
        user: Account performing the operation

    Returns:
        Debited lots, in lock order
    """
    lot_ids = sorted(UUID(str(lot_id)) for lot_id in quantities)
    normalized = {UUID(str(lot_id)): qty for lot_id, qty in quantities.items()}

    with transaction.atomic():
        locked = list(
            StockLot.objects
            .select_for_update()
            .filter(pk__in=lot_ids)
            .order_by('pk')
        )
        missing = set(lot_ids) - {lot.pk for lot in locked}
        if missing:
            raise StockLotNotFoundError(
                f"Stock lot {sorted(missing)[0]} not found"
            )

        debited = []
        for lot_id in lot_ids:
            key = f"{idempotency_prefix}:{lot_id}" if idempotency_prefix else None
            debited.append(
                debit(
                    lot_id=lot_id,
                    quantity=normalized[lot_id],
                    reason=reason,
                    idempotency_key=key,
                    user=user,
                )
            )
        return debited


@transaction.atomic
def credit(
    *,
    lot_id: UUID,
    quantity: int,
    reason: str = '',
    idempotency_key: Optional[str] = None,
    user: Optional[User] = None,
) -> bool:
    """
    Put units back on a lot (reversal of an earlier debit).

    With an idempotency key the credit is applied at most once: the journal
    row is written first and its unique key decides which of two racing
    callers wins.

    Returns:
        True if the lot was credited, False if the key was already used
    """
    _check_quantity(quantity)
    lot = _lock_lot(lot_id)

    if _already_applied(idempotency_key):
        logger.info("Credit %s already applied, skipping", idempotency_key)
        return False

    try:
        with transaction.atomic():
            StockMovement.objects.create(
                lot=lot,
                kind=MovementKind.ENTRY,
                quantity=quantity,
                quantity_before=lot.quantity_available,
                quantity_after=lot.quantity_available + quantity,
                reason=reason[:255],
                idempotency_key=idempotency_key,
                created_by=user,
            )
    except IntegrityError:
        logger.info("Credit %s applied concurrently, skipping", idempotency_key)
        return False

    StockLot.objects.filter(pk=lot.pk).update(
        quantity_available=F('quantity_available') + quantity,
        updated_at=timezone.now(),
    )
    logger.info("Credited %s to lot %s (%s)", quantity, lot.pk, reason)
    return True


@transaction.atomic
def create_lot(
    *,
    establishment: Establishment,
    product: Product,
    quantity: int,
    unit_price: Decimal,
    lot_number: str = '',
    expiration_date: Optional[date] = None,
    reason: str = '',
    idempotency_key: Optional[str] = None,
    user: Optional[User] = None,
) -> StockLot:
    """
    Materialize a new lot in an establishment's inventory.

    A fresh lot has no contention. Purchase and sale prices both start at
    ``unit_price``. With an idempotency key, replaying the call returns the
    lot created the first time.
    """
    _check_quantity(quantity)

    if idempotency_key:
        existing = (
            StockMovement.objects
            .select_related('lot')
            .filter(idempotency_key=idempotency_key)
            .first()
        )
        if existing is not None:
            return existing.lot

    lot = StockLot.objects.create(
        establishment=establishment,
        product=product,
        lot_number=lot_number or '',
        quantity_available=quantity,
        unit_purchase_price=unit_price,
        unit_sale_price=unit_price,
        expiration_date=expiration_date,
    )
    StockMovement.objects.create(
        lot=lot,
        kind=MovementKind.ENTRY,
        quantity=quantity,
        quantity_before=0,
        quantity_after=quantity,
        reason=reason[:255],
        idempotency_key=idempotency_key,
        created_by=user,
    )
    logger.info("Created lot %s for %s with %s units", lot.pk, product.name, quantity)
    return lot
