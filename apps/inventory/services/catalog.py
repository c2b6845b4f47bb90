"""Catalog lookups for one establishment, and product matching for received goods."""

import logging
from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from apps.establishments.models import Establishment
from apps.inventory.models import Product, StockLot
from .exceptions import ProductNotFoundError, StockLotNotFoundError

logger = logging.getLogger(__name__)


def search_products(*, establishment: Establishment, query: str = '') -> QuerySet[Product]:
    """Active products of the establishment matching name or code."""
    queryset = Product.objects.filter(establishment=establishment, is_active=True)
    if query:
        queryset = queryset.filter(Q(name__icontains=query) | Q(code__icontains=query))
    return queryset


def search_stock_lots(
    *,
    establishment: Establishment,
    query: str = '',
    in_stock_only: bool = True,
) -> QuerySet[StockLot]:
    """
    Active lots of the establishment.

    Matches product name, product code or lot number. By default only lots
    with units left are returned, earliest expiration first.
    """
    queryset = (
        StockLot.objects
        .filter(establishment=establishment, is_active=True)
        .select_related('product')
    )
    if in_stock_only:
        queryset = queryset.filter(quantity_available__gt=0)
    if query:
        queryset = queryset.filter(
            Q(product__name__icontains=query) |
            Q(product__code__icontains=query) |
            Q(lot_number__icontains=query)
        )
    return queryset


def get_stock_lot(*, establishment: Establishment, lot_id: UUID) -> StockLot:
    """
    Raises:
        StockLotNotFoundError: If the lot is unknown, inactive or not owned
            by ``establishment``
    """
    try:
        return (
            StockLot.objects
            .select_related('product')
            .get(id=lot_id, establishment=establishment, is_active=True)
        )
    except (StockLot.DoesNotExist, ValueError):
        raise StockLotNotFoundError(f"Stock lot {lot_id} not found")


def get_product(*, establishment: Establishment, product_id: UUID) -> Product:
    """
    Raises:
        ProductNotFoundError: If the product is not in the establishment's catalog
    """
    try:
        return Product.objects.get(id=product_id, establishment=establishment, is_active=True)
    except (Product.DoesNotExist, ValueError):
        raise ProductNotFoundError(f"Product {product_id} not found")


def match_or_create_product(
    *,
    establishment: Establishment,
    name: str,
    code: Optional[str] = None,
) -> Product:
    """
    Find the establishment's product for goods described by another catalog.

    Matches on code first, then on name (case-insensitive). Creates the
    product when neither matches.
    """
    products = Product.objects.filter(establishment=establishment, is_active=True)

    product = None
    if code:
        product = products.filter(code=code).first()
    if product is None:
        product = products.filter(name__iexact=name).first()
    if product is None:
        product = Product.objects.create(establishment=establishment, name=name, code=code or None)
        logger.info("Created product %s in catalog of %s", name, establishment.name)
    return product
