"""
Exchange reference issuance.

References look like ``CFR-000042``: a configurable prefix and a six digit,
zero-padded counter per establishment. Numbers are never reused, including
after a draft is deleted.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from apps.establishments.models import Establishment
from apps.exchanges.models import ReferenceSequence

logger = logging.getLogger(__name__)


def format_reference(value: int) -> str:
    return f"{settings.EXCHANGES_REFERENCE_PREFIX}-{value:06d}"


def _lock_sequence(establishment: Establishment) -> ReferenceSequence:
    # get_or_create retries the lookup if a concurrent caller inserted first
    sequence, _ = (
        ReferenceSequence.objects
        .select_for_update()
        .get_or_create(establishment=establishment)
    )
    return sequence


@transaction.atomic
def issue_reference(*, establishment: Establishment) -> str:
    """
    Reserve the next reference for an establishment.

    The sequence row is locked for the rest of the enclosing transaction, so
    two concurrent creations always receive distinct numbers. If the
    enclosing transaction rolls back, the number is released with it.
    """
    sequence = _lock_sequence(establishment)
    ReferenceSequence.objects.filter(pk=sequence.pk).update(
        last_value=F('last_value') + 1
    )
    sequence.refresh_from_db(fields=['last_value'])

    reference = format_reference(sequence.last_value)
    logger.debug("Issued reference %s for establishment %s", reference, establishment.pk)
    return reference
