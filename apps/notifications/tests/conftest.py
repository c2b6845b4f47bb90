import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.notifications.models import Notification, NotificationKind, NotificationPriority


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def recipient(db):
    return User.objects.create_user(email='inbox@example.com', password='TestPass123!')


@pytest.fixture
def other_recipient(db):
    return User.objects.create_user(email='someone-else@example.com', password='TestPass123!')


@pytest.fixture
def unread_notification(recipient):
    return Notification.objects.create(
        recipient=recipient,
        kind=NotificationKind.EXCHANGE_RECEIVED,
        title='New exchange CFR-000001',
        message='Pharmacie du Centre sent you an exchange of 3 articles.',
        priority=NotificationPriority.HIGH,
    )


@pytest.fixture
def read_notification(recipient):
    return Notification.objects.create(
        recipient=recipient,
        kind=NotificationKind.EXCHANGE_ACCEPTED,
        title='Exchange CFR-000002 accepted',
        message='Pharmacie de la Gare accepted your exchange.',
        is_read=True,
    )


@pytest.fixture
def foreign_notification(other_recipient):
    return Notification.objects.create(
        recipient=other_recipient,
        kind=NotificationKind.EXCHANGE_REFUSED,
        title='Exchange CFR-000003 refused',
        message='Out of scope.',
    )


@pytest.fixture
def authenticated_client(api_client, recipient):
    """Return API client authenticated as recipient."""
    refresh = RefreshToken.for_user(recipient)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
