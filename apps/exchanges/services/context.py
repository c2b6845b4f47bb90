"""
Caller context for exchange operations.

Every operation runs on behalf of an account and its principal
establishment; the pair is resolved once per request and passed explicitly.
"""

from dataclasses import dataclass

from apps.accounts.models import User
from apps.establishments.models import Establishment
from apps.establishments.services import get_principal_establishment


@dataclass(frozen=True)
class ExchangeContext:
    user: User
    establishment: Establishment

    def is_owner(self, exchange) -> bool:
        return exchange.establishment_id == self.establishment.pk

    def is_counterparty(self, exchange) -> bool:
        return (
            exchange.counterparty_account_id is not None
            and exchange.counterparty_account_id == self.user.pk
        )


def build_context(user: User) -> ExchangeContext:
    """
    Resolve the caller's principal establishment.

    Raises:
        NoPrincipalEstablishmentError: If the account has none
    """
    return ExchangeContext(
        user=user,
        establishment=get_principal_establishment(account=user),
    )
