from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import NotificationFilterSerializer, NotificationSerializer
from .services import list_notifications, mark_read


class NotificationPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """The caller's inbox."""
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = NotificationPagination

    def get_queryset(self):
        unread_only = False
        if self.action == 'list':
            filters = NotificationFilterSerializer(data=self.request.query_params)
            filters.is_valid(raise_exception=True)
            unread_only = filters.validated_data['unread']
        return list_notifications(user=self.request.user, unread_only=unread_only)

    @extend_schema(
        parameters=[NotificationFilterSerializer],
        responses=NotificationSerializer(many=True),
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    @extend_schema(request=None, responses=NotificationSerializer)
    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        """Mark one notification as read."""
        notification = mark_read(notification=self.get_object())
        return Response(NotificationSerializer(notification).data)
