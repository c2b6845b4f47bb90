from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class ExchangeDirection(models.TextChoices):
    OUTGOING = 'outgoing', 'Outgoing'
    INCOMING = 'incoming', 'Incoming'


class ExchangeStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    PENDING_ACCEPTANCE = 'pending_acceptance', 'Pending acceptance'
    ACCEPTED = 'accepted', 'Accepted'
    PENDING_PAYMENT = 'pending_payment', 'Pending payment'
    PAYMENT_CONFIRMED = 'payment_confirmed', 'Payment confirmed'
    CLOSED = 'closed', 'Closed'
    REFUSED = 'refused', 'Refused'
    CANCELLED = 'cancelled', 'Cancelled'


TERMINAL_STATUSES = frozenset({
    ExchangeStatus.CLOSED,
    ExchangeStatus.REFUSED,
    ExchangeStatus.CANCELLED,
})


class ExchangeAction(models.TextChoices):
    CREATE = 'create', 'Create'
    EDIT_LINES = 'edit_lines', 'Edit lines'
    SEND = 'send', 'Send'
    ACCEPT = 'accept', 'Accept'
    REFUSE = 'refuse', 'Refuse'
    CONFIRM_PAYMENT = 'confirm_payment', 'Confirm payment'
    CLOSE = 'close', 'Close'
    CANCEL = 'cancel', 'Cancel'
    DELETE = 'delete', 'Delete'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CHECK = 'check', 'Check'
    TRANSFER = 'transfer', 'Bank transfer'
    CARD = 'card', 'Card'
    OTHER = 'other', 'Other'


class Exchange(models.Model):
    """
    Bilateral movement of stock between my establishment and a partner.

    Totals are derived from the lines and only written by
    ``recompute_totals``. Lifecycle timestamps are set once and never
    cleared. ``version`` is bumped on every committed change and is the
    compare-and-swap token of the workflow.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(max_length=32, editable=False)

    # Tenant: "my own establishment"
    establishment = models.ForeignKey(
        'establishments.Establishment',
        on_delete=models.PROTECT,
        related_name='exchanges'
    )
    partner = models.ForeignKey(
        'establishments.Establishment',
        on_delete=models.PROTECT,
        related_name='partner_exchanges'
    )
    # Partner's own account; it answers accept/refuse. Null for manual partners.
    counterparty_account = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_exchanges'
    )
    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_exchanges'
    )

    direction = models.CharField(
        max_length=10,
        choices=ExchangeDirection.choices,
        default=ExchangeDirection.OUTGOING
    )
    is_manual = models.BooleanField(default=True)
    status = models.CharField(
        max_length=20,
        choices=ExchangeStatus.choices,
        default=ExchangeStatus.DRAFT,
        db_index=True
    )

    # Derived from lines
    total_articles = models.PositiveIntegerField(default=0)
    total_quantity = models.PositiveIntegerField(default=0)
    estimated_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Settlement
    amount_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        null=True,
        blank=True
    )
    payment_note = models.TextField(blank=True)

    reason = models.TextField(blank=True)
    note = models.TextField(blank=True)
    refusal_reason = models.TextField(null=True, blank=True)

    # Lifecycle
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    refused_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = 'exchanges'
        constraints = [
            models.UniqueConstraint(
                fields=['establishment', 'reference'],
                name='unique_exchange_reference_per_establishment',
            ),
        ]
        indexes = [
            models.Index(fields=['establishment', 'status'], name='exchanges_establi_9c21d4_idx'),
            models.Index(fields=['counterparty_account', 'status'], name='exchanges_counter_4e7f12_idx'),
            models.Index(fields=['created_at'], name='exchanges_created_b30a97_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.reference} ({self.get_direction_display()}, {self.status})"

    @property
    def source_establishment(self):
        """Establishment giving the goods."""
        if self.direction == ExchangeDirection.OUTGOING:
            return self.establishment
        return self.partner

    @property
    def destination_establishment(self):
        """Establishment receiving the goods."""
        if self.direction == ExchangeDirection.OUTGOING:
            return self.partner
        return self.establishment

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def has_debited_stock(self):
        """Outgoing stock leaves my lots when the exchange is sent."""
        return self.direction == ExchangeDirection.OUTGOING and self.sent_at is not None

    def get_outstanding_balance(self):
        """Return unpaid amount."""
        return max(Decimal('0.00'), self.amount_due - self.amount_paid)

    def recompute_totals(self, lines=None):
        """Recalculate derived totals from lines; amount due follows while in draft."""
        if lines is None:
            lines = list(self.lines.all())

        self.total_articles = len(lines)
        self.total_quantity = sum(line.quantity for line in lines)
        self.estimated_value = sum(
            (line.line_total for line in lines),
            Decimal('0.00')
        )
        if self.status == ExchangeStatus.DRAFT:
            self.amount_due = self.estimated_value


class ExchangeLine(models.Model):
    """One product line of an exchange."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    exchange = models.ForeignKey(
        Exchange,
        on_delete=models.CASCADE,
        related_name='lines'
    )
    position = models.PositiveIntegerField(default=0)

    # Outgoing: lot to debit. Incoming: catalog entry that receives a new lot.
    stock_lot = models.ForeignKey(
        'inventory.StockLot',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='exchange_lines'
    )
    product = models.ForeignKey(
        'inventory.Product',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='exchange_lines'
    )

    product_name = models.CharField(max_length=200)
    product_code = models.CharField(max_length=64, null=True, blank=True)
    lot_number = models.CharField(max_length=100, null=True, blank=True)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    expiration_date = models.DateField(null=True, blank=True)
    note = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'exchange_lines'
        ordering = ['position']

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    def save(self, *args, **kwargs):
        """Keep line_total = quantity x unit_price."""
        self.line_total = Decimal(self.quantity) * Decimal(self.unit_price)
        super().save(*args, **kwargs)


class ReferenceSequence(models.Model):
    """Per-establishment counter behind exchange references. Never decremented."""

    establishment = models.OneToOneField(
        'establishments.Establishment',
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='exchange_reference_sequence'
    )
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'exchange_reference_sequences'

    def __str__(self):
        return f"{self.establishment_id}: {self.last_value}"


class ExchangeEvent(models.Model):
    """Audit trail of an exchange: one row per committed action."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Kept after a draft is deleted
    exchange = models.ForeignKey(
        Exchange,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='events'
    )
    establishment = models.ForeignKey(
        'establishments.Establishment',
        on_delete=models.CASCADE,
        related_name='exchange_events'
    )
    reference = models.CharField(max_length=32)

    action = models.CharField(max_length=20, choices=ExchangeAction.choices)
    status_before = models.CharField(max_length=20, choices=ExchangeStatus.choices, blank=True)
    status_after = models.CharField(max_length=20, choices=ExchangeStatus.choices, blank=True)
    description = models.CharField(max_length=255)
    payload = models.JSONField(default=dict, blank=True)

    actor = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='exchange_events'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'exchange_events'
        indexes = [
            models.Index(fields=['exchange', 'created_at'], name='exchange_ev_exchang_1d6b8f_idx'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"{self.reference}: {self.action}"
