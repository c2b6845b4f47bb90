from django.conf import settings
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.establishments.exceptions import EstablishmentServiceError
from apps.inventory.services import InventoryServiceError
from .serializers import (
    ExchangeActionSerializer,
    ExchangeCreateSerializer,
    ExchangeDeleteQuerySerializer,
    ExchangeEventSerializer,
    ExchangeFilterSerializer,
    ExchangeLineAddSerializer,
    ExchangeLineUpdateSerializer,
    ExchangeListSerializer,
    ExchangeSerializer,
)
from .services import (
    ExchangeServiceError,
    add_line,
    build_context,
    create_exchange,
    get_exchange,
    get_history,
    list_exchanges,
    perform_action,
    remove_line,
    update_line,
)

SERVICE_ERRORS = (ExchangeServiceError, InventoryServiceError, EstablishmentServiceError)


class ExchangePagination(PageNumberPagination):
    """Custom pagination for exchanges."""
    page_size = settings.EXCHANGES_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = 100


class ExchangeContextMixin:
    """Resolves the caller's principal establishment once per request."""

    def get_exchange_context(self):
        if not hasattr(self, '_exchange_context'):
            self._exchange_context = build_context(self.request.user)
        return self._exchange_context

    def render_exchange(self, exchange_id, status_code=status.HTTP_200_OK):
        exchange_context = self.get_exchange_context()
        exchange = get_exchange(context=exchange_context, exchange_id=exchange_id)
        serializer = ExchangeSerializer(
            exchange,
            context={'request': self.request, 'exchange_context': exchange_context},
        )
        return Response(serializer.data, status=status_code)

    def error_response(self, exc):
        data = {'error': str(exc), 'code': exc.code}
        data.update(getattr(exc, 'payload', None) or {})
        return Response(data, status=exc.status_code)


class ExchangeViewSet(ExchangeContextMixin, viewsets.GenericViewSet):
    """
    Exchanges between my establishment and partner establishments.

    GET    /api/exchanges/               - List (filters, pagination)
    POST   /api/exchanges/               - Create a draft
    PUT    /api/exchanges/               - Workflow action {id, action, ...}
    DELETE /api/exchanges/?id=           - Delete a draft
    GET    /api/exchanges/{id}/          - Full aggregate
    GET    /api/exchanges/{id}/history/  - Audit trail
    """

    permission_classes = [IsAuthenticated]
    pagination_class = ExchangePagination
    serializer_class = ExchangeSerializer

    @extend_schema(
        parameters=[ExchangeFilterSerializer],
        responses=ExchangeListSerializer(many=True),
    )
    def list(self, request):
        filters = ExchangeFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data

        try:
            queryset = list_exchanges(
                context=self.get_exchange_context(),
                received=params['recus'],
                search=params['search'],
                status=params.get('status'),
                direction=params.get('direction'),
                partner_id=params.get('partner'),
                date_from=params.get('date_from'),
                date_to=params.get('date_to'),
            )
        except SERVICE_ERRORS as e:
            return self.error_response(e)

        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = ExchangeListSerializer(page, many=True)
            return self.get_paginated_response(serializer.data)

        serializer = ExchangeListSerializer(queryset, many=True)
        return Response(serializer.data)

    @extend_schema(request=ExchangeCreateSerializer, responses={201: ExchangeSerializer})
    def create(self, request):
        serializer = ExchangeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            exchange = create_exchange(
                context=self.get_exchange_context(),
                partner_id=data['partner_establishment_id'],
                direction=data['direction'],
                lines=data['lines'],
                reason=data['reason'],
                note=data['note'],
            )
            return self.render_exchange(exchange.pk, status.HTTP_201_CREATED)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

    @extend_schema(request=ExchangeActionSerializer, responses={200: ExchangeSerializer, 204: None})
    def transition(self, request):
        """Apply a workflow action: send, accept, refuse, confirm_payment, close, cancel, delete."""
        serializer = ExchangeActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            exchange = perform_action(
                context=self.get_exchange_context(),
                exchange_id=data['id'],
                action=data['action'],
                payload={
                    'refusal_reason': data.get('refusal_reason'),
                    'amount': data.get('amount'),
                    'payment_method': data.get('payment_method'),
                    'note': data.get('note'),
                },
                expected_version=data.get('expected_version'),
            )
            if exchange is None:
                return Response(status=status.HTTP_204_NO_CONTENT)
            return self.render_exchange(exchange.pk)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

    @extend_schema(
        parameters=[OpenApiParameter('id', str, OpenApiParameter.QUERY, required=True)],
        responses={204: None},
    )
    def destroy_draft(self, request):
        query = ExchangeDeleteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            perform_action(
                context=self.get_exchange_context(),
                exchange_id=query.validated_data['id'],
                action='delete',
            )
        except SERVICE_ERRORS as e:
            return self.error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def retrieve(self, request, pk=None):
        try:
            return self.render_exchange(pk)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

    @extend_schema(responses=ExchangeEventSerializer(many=True))
    def history(self, request, pk=None):
        try:
            exchange = get_exchange(context=self.get_exchange_context(), exchange_id=pk)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

        serializer = ExchangeEventSerializer(get_history(exchange=exchange), many=True)
        return Response(serializer.data)


class ExchangeLineViewSet(ExchangeContextMixin, viewsets.GenericViewSet):
    """
    Draft line editing.

    POST   /api/exchanges/{id}/lines/            - Add a line
    PATCH  /api/exchanges/{id}/lines/{line_id}/  - Update a line
    DELETE /api/exchanges/{id}/lines/{line_id}/  - Remove a line
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ExchangeSerializer

    @extend_schema(request=ExchangeLineAddSerializer, responses={201: ExchangeSerializer})
    def create(self, request, exchange_pk=None):
        serializer = ExchangeLineAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop('expected_version', None)

        try:
            add_line(
                context=self.get_exchange_context(),
                exchange_id=exchange_pk,
                data=data,
                expected_version=expected_version,
            )
            return self.render_exchange(exchange_pk, status.HTTP_201_CREATED)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

    @extend_schema(request=ExchangeLineUpdateSerializer, responses=ExchangeSerializer)
    def partial_update(self, request, exchange_pk=None, pk=None):
        serializer = ExchangeLineUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop('expected_version', None)

        try:
            update_line(
                context=self.get_exchange_context(),
                exchange_id=exchange_pk,
                line_id=pk,
                data=data,
                expected_version=expected_version,
            )
            return self.render_exchange(exchange_pk)
        except SERVICE_ERRORS as e:
            return self.error_response(e)

    @extend_schema(responses=ExchangeSerializer)
    def destroy(self, request, exchange_pk=None, pk=None):
        try:
            remove_line(
                context=self.get_exchange_context(),
                exchange_id=exchange_pk,
                line_id=pk,
            )
            return self.render_exchange(exchange_pk)
        except SERVICE_ERRORS as e:
            return self.error_response(e)
