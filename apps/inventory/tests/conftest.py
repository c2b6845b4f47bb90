import pytest
from decimal import Decimal
from datetime import date
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.establishments.models import Establishment
from apps.inventory.models import Product, StockLot


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def account(db):
    return User.objects.create_user(email='stock@example.com', password='TestPass123!')


@pytest.fixture
def establishment(account):
    return Establishment.objects.create(
        account=account,
        name='Pharmacie des Tilleuls',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def other_establishment(db):
    other = User.objects.create_user(email='elsewhere@example.com', password='TestPass123!')
    return Establishment.objects.create(account=other, name='Pharmacie Ailleurs', is_principal=True)


@pytest.fixture
def product(establishment):
    return Product.objects.create(
        establishment=establishment,
        name='Doliprane 1000mg',
        code='3400935955838',
    )


@pytest.fixture
def lot(establishment, product):
    """10 units."""
    return StockLot.objects.create(
        establishment=establishment,
        product=product,
        lot_number='D-2031',
        quantity_available=10,
        unit_purchase_price=Decimal('1.20'),
        unit_sale_price=Decimal('2.18'),
        expiration_date=date(2027, 3, 31),
    )


@pytest.fixture
def second_lot(establishment, product):
    """3 units."""
    return StockLot.objects.create(
        establishment=establishment,
        product=product,
        lot_number='D-2044',
        quantity_available=3,
        unit_sale_price=Decimal('2.18'),
        expiration_date=date(2027, 9, 30),
    )


@pytest.fixture
def empty_lot(establishment, product):
    return StockLot.objects.create(
        establishment=establishment,
        product=product,
        lot_number='D-1999',
        quantity_available=0,
    )


@pytest.fixture
def authenticated_client(api_client, account, establishment):
    """Return API client authenticated as the establishment's account."""
    refresh = RefreshToken.for_user(account)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
