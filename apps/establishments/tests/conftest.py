import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.establishments.models import Establishment, EstablishmentType


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def account(db):
    return User.objects.create_user(email='owner@example.com', password='TestPass123!')


@pytest.fixture
def other_account(db):
    return User.objects.create_user(email='other@example.com', password='TestPass123!')


@pytest.fixture
def principal(account):
    return Establishment.objects.create(
        account=account,
        name='Pharmacie Saint-Jean',
        city='Bordeaux',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def directory(account, other_account, principal):
    """Three partners in the account's directory, one of them inactive."""
    return [
        Establishment.objects.create(
            account=account,
            name='Pharmacie de la Bourse',
            city='Bordeaux',
            phone='0556000001',
            is_manual=False,
            linked_account=other_account,
        ),
        Establishment.objects.create(
            account=account,
            name='Grossiste Sud-Ouest',
            type=EstablishmentType.WHOLESALER,
            city='Mérignac',
        ),
        Establishment.objects.create(
            account=account,
            name='Pharmacie Fermée',
            is_active=False,
        ),
    ]


@pytest.fixture
def foreign_establishment(other_account):
    return Establishment.objects.create(
        account=other_account,
        name='Pharmacie du Lac',
        is_principal=True,
    )


@pytest.fixture
def authenticated_client(api_client, account):
    """Return API client authenticated as account."""
    refresh = RefreshToken.for_user(account)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
