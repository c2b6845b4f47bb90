"""Notification delivery and inbox operations."""

import logging
from typing import Optional

from django.db.models import QuerySet

from apps.accounts.models import User
from .models import Notification, NotificationPriority

logger = logging.getLogger(__name__)


def notify(
    *,
    recipient: Optional[User],
    kind: str,
    title: str,
    message: str,
    link: str = '',
    priority: str = NotificationPriority.NORMAL,
) -> Optional[Notification]:
    """
    Store a notification for an account.

    Returns None when there is no recipient (manual partners have no account).
    """
    if recipient is None:
        return None

    notification = Notification.objects.create(
        recipient=recipient,
        kind=kind,
        title=title[:200],
        message=message,
        link=link,
        priority=priority,
    )
    logger.info("Notification %s sent to %s", kind, recipient.email)
    return notification


def list_notifications(*, user: User, unread_only: bool = False) -> QuerySet[Notification]:
    queryset = Notification.objects.filter(recipient=user)
    if unread_only:
        queryset = queryset.filter(is_read=False)
    return queryset.order_by('-created_at')


def mark_read(*, notification: Notification) -> Notification:
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=['is_read'])
    return notification
