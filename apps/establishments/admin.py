from django.contrib import admin
from .models import Establishment


@admin.register(Establishment)
class EstablishmentAdmin(admin.ModelAdmin):
    """Admin interface for establishment directories."""

    list_display = [
        'name',
        'type',
        'account',
        'is_principal',
        'is_manual',
        'linked_account',
        'is_active',
    ]
    list_filter = ['type', 'is_principal', 'is_manual', 'is_active']
    search_fields = ['name', 'city', 'account__email']
    raw_id_fields = ['account', 'linked_account']
