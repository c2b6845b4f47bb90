from rest_framework import serializers
from .models import User


class CurrentUserSerializer(serializers.ModelSerializer):
    """Account profile with its principal establishment."""

    display_name = serializers.SerializerMethodField()
    establishment = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name', 'establishment', 'created_at']
        read_only_fields = fields

    def get_display_name(self, obj):
        return obj.get_display_name()

    def get_establishment(self, obj):
        establishment = obj.get_principal_establishment()
        if establishment is None:
            return None
        return {
            'id': str(establishment.id),
            'name': establishment.name,
            'type': establishment.type,
        }
