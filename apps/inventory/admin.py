from django.contrib import admin
from .models import Product, StockLot, StockMovement


class StockMovementInline(admin.TabularInline):
    """Read-only journal within a lot."""
    model = StockMovement
    extra = 0
    fields = ['kind', 'quantity', 'quantity_before', 'quantity_after', 'reason', 'created_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Movements are written by the stock ledger only."""
        return False


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'establishment', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'code']


@admin.register(StockLot)
class StockLotAdmin(admin.ModelAdmin):
    list_display = [
        'product',
        'lot_number',
        'establishment',
        'quantity_available',
        'unit_sale_price',
        'expiration_date',
    ]
    list_filter = ['is_active', 'expiration_date']
    search_fields = ['product__name', 'lot_number']
    # Quantity only moves through the stock ledger
    readonly_fields = ['quantity_available', 'created_at', 'updated_at']
    inlines = [StockMovementInline]
