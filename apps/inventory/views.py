from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from apps.establishments.exceptions import EstablishmentServiceError
from apps.establishments.services import get_principal_establishment
from .serializers import CatalogFilterSerializer, ProductSerializer, StockLotSerializer
from .services import search_products, search_stock_lots


class CatalogPagination(PageNumberPagination):
    """Custom pagination for catalog search."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class CatalogViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only catalog scoped to the current account's principal establishment."""

    permission_classes = [IsAuthenticated]
    pagination_class = CatalogPagination

    def list(self, request, *args, **kwargs):
        try:
            return super().list(request, *args, **kwargs)
        except EstablishmentServiceError as e:
            return Response({'error': str(e), 'code': e.code}, status=e.status_code)

    def retrieve(self, request, *args, **kwargs):
        try:
            return super().retrieve(request, *args, **kwargs)
        except EstablishmentServiceError as e:
            return Response({'error': str(e), 'code': e.code}, status=e.status_code)

    def get_filters(self):
        params = CatalogFilterSerializer(data=self.request.query_params)
        params.is_valid(raise_exception=True)
        return params.validated_data

    def get_establishment(self):
        return get_principal_establishment(account=self.request.user)


class ProductViewSet(CatalogViewSet):
    """Product catalog of the current account's establishment (read-only)."""

    serializer_class = ProductSerializer

    def get_queryset(self):
        return search_products(
            establishment=self.get_establishment(),
            query=self.get_filters()['search'],
        )


class StockLotViewSet(CatalogViewSet):
    """Stock lots of the current account's establishment (read-only)."""

    serializer_class = StockLotSerializer

    def get_queryset(self):
        filters = self.get_filters()
        return search_stock_lots(
            establishment=self.get_establishment(),
            query=filters['search'],
            in_stock_only=filters['in_stock'] if self.action == 'list' else False,
        )
