from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class Product(models.Model):
    """Catalog entry of one establishment."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    establishment = models.ForeignKey(
        'establishments.Establishment',
        on_delete=models.CASCADE,
        related_name='products'
    )
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=64, blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'products'
        indexes = [
            models.Index(fields=['establishment', 'name'], name='products_establi_3f9a2c_idx'),
            models.Index(fields=['code'], name='products_code_8e41d0_idx'),
        ]
        ordering = ['name']

    def __str__(self):
        return self.name


class StockLot(models.Model):
    """
    Quantity of a product received together.

    ``quantity_available`` is shared by every inventory-affecting subsystem
    (sales, exchanges); it is only ever changed through the stock ledger.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    establishment = models.ForeignKey(
        'establishments.Establishment',
        on_delete=models.CASCADE,
        related_name='stock_lots'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='stock_lots'
    )

    lot_number = models.CharField(max_length=100, blank=True)
    quantity_available = models.PositiveIntegerField(default=0)

    unit_purchase_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    unit_sale_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    expiration_date = models.DateField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'stock_lots'
        indexes = [
            models.Index(fields=['establishment', 'product'], name='stock_lots_establi_71c0b5_idx'),
            models.Index(fields=['expiration_date'], name='stock_lots_expirat_0d2e6a_idx'),
        ]
        ordering = ['expiration_date', 'created_at']

    def __str__(self):
        lot = self.lot_number or 'no lot'
        return f"{self.product.name} ({lot}) - {self.quantity_available}"


class MovementKind(models.TextChoices):
    ENTRY = 'entry', 'Entry'
    EXIT = 'exit', 'Exit'


class StockMovement(models.Model):
    """Inventory journal: one row per change of a lot's quantity."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    lot = models.ForeignKey(
        StockLot,
        on_delete=models.CASCADE,
        related_name='movements'
    )
    kind = models.CharField(max_length=10, choices=MovementKind.choices)
    quantity = models.PositiveIntegerField()
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()
    reason = models.CharField(max_length=255, blank=True)

    # Guards replays of the same ledger operation (e.g. a retried restoration)
    idempotency_key = models.CharField(max_length=128, unique=True, null=True, blank=True)

    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_movements'
        indexes = [
            models.Index(fields=['lot', 'created_at'], name='stock_movem_lot_id_5a8e13_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        sign = '+' if self.kind == MovementKind.ENTRY else '-'
        return f"{sign}{self.quantity} on {self.lot_id}"
