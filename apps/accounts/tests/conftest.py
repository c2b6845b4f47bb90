import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.establishments.models import Establishment


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def pharmacist(db):
    """Create and return an account."""
    return User.objects.create_user(
        email='pharmacist@example.com',
        password='TestPass123!',
        display_name='Claire Martin',
    )


@pytest.fixture
def principal_establishment(pharmacist):
    return Establishment.objects.create(
        account=pharmacist,
        name='Pharmacie des Arcades',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def authenticated_client(api_client, pharmacist):
    """Return API client authenticated with a JWT."""
    refresh = RefreshToken.for_user(pharmacist)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
