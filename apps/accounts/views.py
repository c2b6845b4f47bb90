from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .serializers import CurrentUserSerializer


@extend_schema(
    responses={200: CurrentUserSerializer},
    description="Get the authenticated account and its principal establishment.",
    tags=['accounts'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def get_current_user(request):
    """Return the current account."""
    return Response(CurrentUserSerializer(request.user).data)
