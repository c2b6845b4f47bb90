"""
Establishment directory.

Read side of the partner directory consumed by the exchange workflow:
resolving a partner id, searching the directory and resolving the caller's
own (principal) establishment.
"""

from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from apps.accounts.models import User
from .exceptions import EstablishmentNotFoundError, NoPrincipalEstablishmentError
from .models import Establishment


def search_establishments(
    *,
    account: User,
    query: str = '',
    establishment_type: Optional[str] = None,
    include_principal: bool = True,
) -> QuerySet[Establishment]:
    """
    Search the account's active directory entries.

    Matches name, address, city, phone and email (case-insensitive).
    """
    queryset = Establishment.objects.filter(account=account, is_active=True)

    if not include_principal:
        queryset = queryset.filter(is_principal=False)

    if query:
        queryset = queryset.filter(
            Q(name__icontains=query) |
            Q(address__icontains=query) |
            Q(city__icontains=query) |
            Q(phone__icontains=query) |
            Q(email__icontains=query)
        )

    if establishment_type:
        queryset = queryset.filter(type=establishment_type)

    return queryset.select_related('linked_account')


def get_establishment(*, account: User, establishment_id: UUID) -> Establishment:
    """
    Resolve an establishment id inside the account's directory.

    Raises:
        EstablishmentNotFoundError: If the id is unknown, inactive or owned
            by another account
    """
    try:
        return (
            Establishment.objects
            .select_related('linked_account')
            .get(id=establishment_id, account=account, is_active=True)
        )
    except (Establishment.DoesNotExist, ValueError):
        raise EstablishmentNotFoundError(f"Establishment {establishment_id} not found")


def get_principal_establishment(*, account: User) -> Establishment:
    """
    Return the account's own establishment.

    Raises:
        NoPrincipalEstablishmentError: If the account has none
    """
    establishment = account.get_principal_establishment()
    if establishment is None:
        raise NoPrincipalEstablishmentError(
            "Declare your own establishment before working with partners"
        )
    return establishment
