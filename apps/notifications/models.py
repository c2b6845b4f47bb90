from django.db import models
import uuid


class NotificationKind(models.TextChoices):
    EXCHANGE_RECEIVED = 'exchange_received', 'Exchange received'
    EXCHANGE_ACCEPTED = 'exchange_accepted', 'Exchange accepted'
    EXCHANGE_REFUSED = 'exchange_refused', 'Exchange refused'
    EXCHANGE_CANCELLED = 'exchange_cancelled', 'Exchange cancelled'


class NotificationPriority(models.TextChoices):
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'


class Notification(models.Model):
    """In-app message for an account, e.g. a partner answered an exchange."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    recipient = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    kind = models.CharField(max_length=30, choices=NotificationKind.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    link = models.CharField(max_length=255, blank=True)
    priority = models.CharField(
        max_length=10,
        choices=NotificationPriority.choices,
        default=NotificationPriority.NORMAL
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notificatio_recipie_5a0c3e_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.recipient_id}: {self.title}"
