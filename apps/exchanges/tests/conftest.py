import pytest
from decimal import Decimal
from datetime import date
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.establishments.models import Establishment, EstablishmentType
from apps.exchanges.models import ExchangeDirection
from apps.exchanges.services import ExchangeContext, create_exchange
from apps.inventory.models import Product, StockLot


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


def _authenticate(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


# =============================================================================
# Accounts and establishments
# =============================================================================

@pytest.fixture
def owner_user(db):
    """Account running Pharmacie du Centre."""
    return User.objects.create_user(
        email='centre@example.com',
        password='TestPass123!',
        display_name='Pharmacie du Centre',
    )


@pytest.fixture
def partner_user(db):
    """Account running Pharmacie de la Gare, linked as a partner."""
    return User.objects.create_user(
        email='gare@example.com',
        password='TestPass123!',
        display_name='Pharmacie de la Gare',
    )


@pytest.fixture
def outsider_user(db):
    """Account with its own establishment and no exchange with anyone."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


@pytest.fixture
def owner_establishment(owner_user):
    return Establishment.objects.create(
        account=owner_user,
        name='Pharmacie du Centre',
        type=EstablishmentType.PHARMACY,
        city='Lyon',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def partner_establishment(partner_user):
    """The partner's own principal establishment."""
    return Establishment.objects.create(
        account=partner_user,
        name='Pharmacie de la Gare',
        type=EstablishmentType.PHARMACY,
        city='Lyon',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def outsider_establishment(outsider_user):
    return Establishment.objects.create(
        account=outsider_user,
        name='Pharmacie du Port',
        is_principal=True,
        is_manual=False,
    )


@pytest.fixture
def linked_partner(owner_user, partner_user, partner_establishment):
    """Directory entry of owner_user pointing at partner_user's account."""
    return Establishment.objects.create(
        account=owner_user,
        name='Pharmacie de la Gare',
        type=EstablishmentType.PHARMACY,
        is_manual=False,
        linked_account=partner_user,
    )


@pytest.fixture
def manual_partner(owner_user):
    """Directory entry with no account behind it."""
    return Establishment.objects.create(
        account=owner_user,
        name='Parapharmacie des Halles',
        type=EstablishmentType.PARAPHARMACY,
        is_manual=True,
    )


@pytest.fixture
def owner_context(owner_user, owner_establishment):
    return ExchangeContext(user=owner_user, establishment=owner_establishment)


@pytest.fixture
def partner_context(partner_user, partner_establishment):
    return ExchangeContext(user=partner_user, establishment=partner_establishment)


@pytest.fixture
def outsider_context(outsider_user, outsider_establishment):
    return ExchangeContext(user=outsider_user, establishment=outsider_establishment)


# =============================================================================
# Inventory
# =============================================================================

@pytest.fixture
def product_a(owner_establishment):
    return Product.objects.create(
        establishment=owner_establishment,
        name='Paracetamol 500mg',
        code='3400930000001',
    )


@pytest.fixture
def product_b(owner_establishment):
    return Product.objects.create(
        establishment=owner_establishment,
        name='Ibuprofen 200mg',
        code='3400930000002',
    )


@pytest.fixture
def product_p(owner_establishment):
    """Catalog entry receiving incoming goods."""
    return Product.objects.create(
        establishment=owner_establishment,
        name='Amoxicillin 1g',
        code='3400930000003',
    )


@pytest.fixture
def lot_a(owner_establishment, product_a):
    """12 units sold at 10.00."""
    return StockLot.objects.create(
        establishment=owner_establishment,
        product=product_a,
        lot_number='LA-001',
        quantity_available=12,
        unit_purchase_price=Decimal('6.00'),
        unit_sale_price=Decimal('10.00'),
        expiration_date=date(2027, 6, 30),
    )


@pytest.fixture
def lot_b(owner_establishment, product_b):
    """4 units sold at 25.00."""
    return StockLot.objects.create(
        establishment=owner_establishment,
        product=product_b,
        lot_number='LB-001',
        quantity_available=4,
        unit_purchase_price=Decimal('15.00'),
        unit_sale_price=Decimal('25.00'),
        expiration_date=date(2027, 12, 31),
    )


@pytest.fixture
def foreign_lot(partner_establishment):
    """Lot that belongs to the partner's inventory."""
    product = Product.objects.create(
        establishment=partner_establishment,
        name='Vitamin C',
    )
    return StockLot.objects.create(
        establishment=partner_establishment,
        product=product,
        quantity_available=50,
        unit_sale_price=Decimal('3.00'),
    )


# =============================================================================
# Exchanges
# =============================================================================

@pytest.fixture
def manual_outgoing_draft(owner_context, manual_partner, lot_a, lot_b):
    """Outgoing draft to a manual partner: A 5 @ 10 + B 2 @ 25 = 100."""
    return create_exchange(
        context=owner_context,
        partner_id=manual_partner.id,
        direction=ExchangeDirection.OUTGOING,
        lines=[
            {'stock_lot_id': lot_a.id, 'quantity': 5},
            {'stock_lot_id': lot_b.id, 'quantity': 2},
        ],
        reason='Dépannage',
    )


@pytest.fixture
def linked_outgoing_draft(owner_context, linked_partner, lot_a, lot_b):
    """Outgoing draft to a linked partner: A 5 @ 10 + B 2 @ 25 = 100."""
    return create_exchange(
        context=owner_context,
        partner_id=linked_partner.id,
        direction=ExchangeDirection.OUTGOING,
        lines=[
            {'stock_lot_id': lot_a.id, 'quantity': 5},
            {'stock_lot_id': lot_b.id, 'quantity': 2},
        ],
    )


@pytest.fixture
def linked_incoming_draft(owner_context, linked_partner, product_p):
    """Incoming draft from a linked partner: P 10 @ 5 = 50."""
    return create_exchange(
        context=owner_context,
        partner_id=linked_partner.id,
        direction=ExchangeDirection.INCOMING,
        lines=[
            {'product_id': product_p.id, 'quantity': 10, 'unit_price': Decimal('5.00')},
        ],
    )


@pytest.fixture
def manual_incoming_draft(owner_context, manual_partner, product_p):
    """Incoming draft from a manual partner, one line with a lot number and one without."""
    return create_exchange(
        context=owner_context,
        partner_id=manual_partner.id,
        direction=ExchangeDirection.INCOMING,
        lines=[
            {
                'product_id': product_p.id,
                'quantity': 10,
                'unit_price': Decimal('5.00'),
                'lot_number': 'AMX-778',
                'expiration_date': date(2028, 1, 31),
            },
            {'product_id': product_p.id, 'quantity': 3, 'unit_price': Decimal('4.50')},
        ],
    )


# =============================================================================
# API clients
# =============================================================================

@pytest.fixture
def owner_client(owner_user, owner_establishment):
    """Return API client authenticated as the issuing pharmacy."""
    return _authenticate(owner_user)


@pytest.fixture
def partner_client(partner_user, partner_establishment):
    """Return API client authenticated as the linked partner."""
    return _authenticate(partner_user)


@pytest.fixture
def outsider_client(outsider_user, outsider_establishment):
    """Return API client authenticated as an unrelated pharmacy."""
    return _authenticate(outsider_user)
