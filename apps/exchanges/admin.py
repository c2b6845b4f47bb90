from django.contrib import admin

from .models import Exchange, ExchangeEvent, ExchangeLine, ReferenceSequence


class ExchangeLineInline(admin.TabularInline):
    model = ExchangeLine
    extra = 0
    fields = ['position', 'product_name', 'lot_number', 'quantity', 'unit_price', 'line_total', 'expiration_date']
    readonly_fields = fields
    can_delete = False


class ExchangeEventInline(admin.TabularInline):
    model = ExchangeEvent
    extra = 0
    fields = ['created_at', 'action', 'status_before', 'status_after', 'description', 'actor']
    readonly_fields = fields
    can_delete = False


@admin.register(Exchange)
class ExchangeAdmin(admin.ModelAdmin):
    """Read-mostly: state changes go through the workflow, not the admin."""

    list_display = [
        'reference', 'establishment', 'partner', 'direction', 'status',
        'estimated_value', 'amount_paid', 'created_at',
    ]
    list_filter = ['status', 'direction', 'is_manual', 'created_at']
    search_fields = ['reference', 'reason', 'establishment__name', 'partner__name']
    readonly_fields = [
        'id', 'reference', 'status', 'version',
        'total_articles', 'total_quantity', 'estimated_value',
        'amount_due', 'amount_paid',
        'created_at', 'sent_at', 'received_at', 'accepted_at',
        'refused_at', 'paid_at', 'closed_at', 'cancelled_at', 'updated_at',
    ]
    inlines = [ExchangeLineInline, ExchangeEventInline]
    date_hierarchy = 'created_at'


@admin.register(ReferenceSequence)
class ReferenceSequenceAdmin(admin.ModelAdmin):
    list_display = ['establishment', 'last_value']
    readonly_fields = ['last_value']
