from rest_framework import serializers
from .models import Establishment, EstablishmentType


class EstablishmentFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for directory search.

    Query Parameters:
        search (str): Matches name, address, city, phone, email
        type (str): Establishment type
        partners_only (bool): Exclude the principal establishment
    """

    search = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=EstablishmentType.choices, required=False)
    partners_only = serializers.BooleanField(required=False, default=False)


class EstablishmentSerializer(serializers.ModelSerializer):
    """Directory entry as seen by the exchange screens."""

    is_linked = serializers.BooleanField(read_only=True)

    class Meta:
        model = Establishment
        fields = [
            'id',
            'name',
            'type',
            'address',
            'city',
            'phone',
            'email',
            'is_principal',
            'is_manual',
            'is_linked',
            'created_at',
        ]
        read_only_fields = fields


class EstablishmentMinimalSerializer(serializers.ModelSerializer):
    """Minimal establishment info for nested serialization."""

    class Meta:
        model = Establishment
        fields = ['id', 'name', 'type', 'is_manual']
        read_only_fields = fields
