from rest_framework import serializers
from .models import Product, StockLot


class CatalogFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for catalog search.

    Query Parameters:
        search (str): Free text (name, code, lot number)
        in_stock (bool): Only lots with units left (lots only)
    """

    search = serializers.CharField(required=False, allow_blank=True, default='')
    in_stock = serializers.BooleanField(required=False, default=True)


class ProductSerializer(serializers.ModelSerializer):

    class Meta:
        model = Product
        fields = ['id', 'name', 'code']
        read_only_fields = fields


class StockLotSerializer(serializers.ModelSerializer):
    """Lot as offered in the exchange line picker."""

    product = ProductSerializer(read_only=True)

    class Meta:
        model = StockLot
        fields = [
            'id',
            'product',
            'lot_number',
            'quantity_available',
            'unit_sale_price',
            'expiration_date',
        ]
        read_only_fields = fields
