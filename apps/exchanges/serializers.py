from rest_framework import serializers

from apps.establishments.serializers import EstablishmentMinimalSerializer
from .models import (
    Exchange,
    ExchangeAction,
    ExchangeDirection,
    ExchangeEvent,
    ExchangeLine,
    ExchangeStatus,
    PaymentMethod,
)
from .services.state_machine import allowed_actions

# Actions reachable through PUT /api/exchanges/
WORKFLOW_ACTIONS = [
    ExchangeAction.SEND,
    ExchangeAction.ACCEPT,
    ExchangeAction.REFUSE,
    ExchangeAction.CONFIRM_PAYMENT,
    ExchangeAction.CLOSE,
    ExchangeAction.CANCEL,
    ExchangeAction.DELETE,
]


# =============================================================================
# Input Serializers
# =============================================================================

class ExchangeFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for exchange listing.

    Query Parameters:
        search (str): Reference, reason or establishment name
        status (str): Exchange status
        direction (str): outgoing / incoming
        partner (UUID): Partner establishment
        date_from (date): Created on or after
        date_to (date): Created on or before
        recus (bool): Exchanges addressed to me instead of issued by me
    """

    search = serializers.CharField(required=False, allow_blank=True, default='')
    status = serializers.ChoiceField(choices=ExchangeStatus.choices, required=False)
    direction = serializers.ChoiceField(choices=ExchangeDirection.choices, required=False)
    partner = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    recus = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({
                'date_to': 'End date must be after start date'
            })

        return attrs


class ExchangeLineInputSerializer(serializers.Serializer):
    """
    One line of a create or add-line request.

    Outgoing lines name a ``stock_lot_id`` of my inventory, incoming lines a
    ``product_id`` of my catalog. Unset fields default from the lot/product.
    """

    stock_lot_id = serializers.UUIDField(required=False)
    product_id = serializers.UUIDField(required=False)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False
    )
    lot_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    expiration_date = serializers.DateField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('stock_lot_id') and not attrs.get('product_id'):
            raise serializers.ValidationError(
                'Either stock_lot_id or product_id is required'
            )
        return attrs


class ExchangeLineAddSerializer(ExchangeLineInputSerializer):
    expected_version = serializers.IntegerField(min_value=1, required=False)


class ExchangeLineUpdateSerializer(serializers.Serializer):
    """Editable fields of a draft line."""

    quantity = serializers.IntegerField(min_value=1, required=False)
    unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False
    )
    lot_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    expiration_date = serializers.DateField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True)
    expected_version = serializers.IntegerField(min_value=1, required=False)


class ExchangeCreateSerializer(serializers.Serializer):
    partner_establishment_id = serializers.UUIDField()
    direction = serializers.ChoiceField(
        choices=ExchangeDirection.choices,
        default=ExchangeDirection.OUTGOING
    )
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    note = serializers.CharField(required=False, allow_blank=True, default='')
    lines = ExchangeLineInputSerializer(many=True, allow_empty=False)


class ExchangeActionSerializer(serializers.Serializer):
    """
    Body of PUT /api/exchanges/.

    Fields:
        id (UUID): Exchange
        action (str): Workflow action
        expected_version (int): Optional optimistic concurrency token
        refusal_reason (str): Required for refuse
        amount (decimal): Required for confirm_payment
        payment_method (str): Required for confirm_payment
        note (str): Payment note for confirm_payment
    """

    id = serializers.UUIDField()
    action = serializers.ChoiceField(choices=[(a.value, a.label) for a in WORKFLOW_ACTIONS])
    expected_version = serializers.IntegerField(min_value=1, required=False)
    refusal_reason = serializers.CharField(required=False, allow_blank=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    note = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        action = attrs['action']

        if action == ExchangeAction.REFUSE and not (attrs.get('refusal_reason') or '').strip():
            raise serializers.ValidationError({
                'refusal_reason': 'A refusal reason is required'
            })

        if action == ExchangeAction.CONFIRM_PAYMENT:
            errors = {}
            if attrs.get('amount') is None:
                errors['amount'] = 'This field is required for confirm_payment'
            if not attrs.get('payment_method'):
                errors['payment_method'] = 'This field is required for confirm_payment'
            if errors:
                raise serializers.ValidationError(errors)

        return attrs


class ExchangeDeleteQuerySerializer(serializers.Serializer):
    id = serializers.UUIDField()


# =============================================================================
# Output Serializers
# =============================================================================

class ExchangeLineSerializer(serializers.ModelSerializer):

    class Meta:
        model = ExchangeLine
        fields = [
            'id',
            'position',
            'stock_lot',
            'product',
            'product_name',
            'product_code',
            'lot_number',
            'quantity',
            'unit_price',
            'line_total',
            'expiration_date',
            'note',
        ]
        read_only_fields = fields


class ExchangeListSerializer(serializers.ModelSerializer):
    """Compact exchange for list views."""

    establishment = EstablishmentMinimalSerializer(read_only=True)
    partner = EstablishmentMinimalSerializer(read_only=True)

    class Meta:
        model = Exchange
        fields = [
            'id',
            'reference',
            'direction',
            'status',
            'is_manual',
            'establishment',
            'partner',
            'total_articles',
            'total_quantity',
            'estimated_value',
            'amount_due',
            'amount_paid',
            'created_at',
            'sent_at',
            'version',
        ]
        read_only_fields = fields


class ExchangeSerializer(serializers.ModelSerializer):
    """Full exchange aggregate with lines."""

    establishment = EstablishmentMinimalSerializer(read_only=True)
    partner = EstablishmentMinimalSerializer(read_only=True)
    source_establishment = EstablishmentMinimalSerializer(read_only=True)
    destination_establishment = EstablishmentMinimalSerializer(read_only=True)
    lines = ExchangeLineSerializer(many=True, read_only=True)
    outstanding_balance = serializers.SerializerMethodField()
    allowed_actions = serializers.SerializerMethodField()

    class Meta:
        model = Exchange
        fields = [
            'id',
            'reference',
            'direction',
            'status',
            'is_manual',
            'establishment',
            'partner',
            'source_establishment',
            'destination_establishment',
            'lines',
            'total_articles',
            'total_quantity',
            'estimated_value',
            'amount_due',
            'amount_paid',
            'outstanding_balance',
            'payment_method',
            'payment_note',
            'reason',
            'note',
            'refusal_reason',
            'created_at',
            'sent_at',
            'received_at',
            'accepted_at',
            'refused_at',
            'paid_at',
            'closed_at',
            'cancelled_at',
            'updated_at',
            'version',
            'allowed_actions',
        ]
        read_only_fields = fields

    def get_outstanding_balance(self, obj) -> str:
        return str(obj.get_outstanding_balance())

    def get_allowed_actions(self, obj) -> list[str]:
        exchange_context = self.context.get('exchange_context')
        if exchange_context is None:
            return []
        return allowed_actions(exchange_context, obj)


class ExchangeEventSerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source='actor.email', read_only=True, default=None)

    class Meta:
        model = ExchangeEvent
        fields = [
            'id',
            'reference',
            'action',
            'status_before',
            'status_after',
            'description',
            'payload',
            'actor_email',
            'created_at',
        ]
        read_only_fields = fields
