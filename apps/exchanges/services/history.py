"""Audit trail of exchange actions."""

from typing import Optional

from django.db.models import QuerySet

from apps.accounts.models import User
from apps.exchanges.models import Exchange, ExchangeEvent


def record_event(
    *,
    exchange: Exchange,
    action: str,
    actor: Optional[User],
    description: str,
    status_before: str = '',
    payload: Optional[dict] = None,
    keep_link: bool = True,
) -> ExchangeEvent:
    """
    Append one history row.

    ``keep_link=False`` stores only the reference, for exchanges about to be
    deleted.
    """
    return ExchangeEvent.objects.create(
        exchange=exchange if keep_link else None,
        establishment_id=exchange.establishment_id,
        reference=exchange.reference,
        action=action,
        status_before=status_before or '',
        status_after=exchange.status if keep_link else '',
        description=description[:255],
        payload=payload or {},
        actor=actor,
    )


def get_history(*, exchange: Exchange) -> QuerySet[ExchangeEvent]:
    return (
        ExchangeEvent.objects
        .filter(exchange=exchange)
        .select_related('actor')
        .order_by('created_at')
    )
