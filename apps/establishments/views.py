from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.pagination import PageNumberPagination

from .serializers import EstablishmentSerializer, EstablishmentFilterSerializer
from .services import search_establishments


class EstablishmentPagination(PageNumberPagination):
    """Custom pagination for the directory."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class EstablishmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only establishment directory of the current account.

    list: Search directory entries
    retrieve: Get one entry
    """

    serializer_class = EstablishmentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = EstablishmentPagination

    def get_queryset(self):
        if self.action != 'list':
            return search_establishments(account=self.request.user)

        filter_serializer = EstablishmentFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        return search_establishments(
            account=self.request.user,
            query=params.get('search', ''),
            establishment_type=params.get('type'),
            include_principal=not params['partners_only'],
        )
