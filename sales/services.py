"""
Sale recording.

A sale is one unit of work: the store's StoreStock rows for every line are
locked in product id order, every line is checked against available stock
before anything is written, and only then are the Sale, its items and the
negative ledger deltas persisted. Any failure rolls the whole sale back.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction

from inventory.ledger import InsufficientStockError, apply_delta, lock_stock
from inventory.models import Product
from stock.models import StockMovement
from stores.models import Store
from users.access import Action, Resource, check_access
from .models import Sale, SaleItem

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Raised when a sale cannot be recorded as requested."""
    pass


def validate_sale_items(items: List[Dict]) -> None:
    """
    Validate line item structure.

    Args:
        items: List of dicts with 'product_id', 'quantity' and optional 'price'

    Raises:
        SaleError: If validation fails
    """
    if not items:
        raise SaleError('At least one item is required')

    seen_products = set()
    for idx, item in enumerate(items):
        if 'product_id' not in item:
            raise SaleError(f"Item {idx}: missing 'product_id'")

        quantity = item.get('quantity')
        if not isinstance(quantity, int) or quantity < 1:
            raise SaleError(f"Item {idx}: quantity must be a positive integer")

        price = item.get('price')
        if price is not None and Decimal(price) < 0:
            raise SaleError(f"Item {idx}: price cannot be negative")

        if item['product_id'] in seen_products:
            raise SaleError(f"Item {idx}: duplicate product {item['product_id']}")
        seen_products.add(item['product_id'])


def record_sale(requester, store: Store, items: List[Dict], notes: Optional[str] = None) -> Sale:
    """
    Record a completed sale and deduct its stock.

    Raises:
        PermissionDenied: If the requester is not a sales user assigned to the store
        SaleError: If the store is not active or the items are invalid
        InsufficientStockError: If any line exceeds the store's available stock
    """
    check_access(requester, Resource.SALE, Action.CREATE, store)

    if store.status != Store.Status.ACTIVE:
        raise SaleError('Store is not active')

    validate_sale_items(items)

    product_ids = [item['product_id'] for item in items]
    products = Product.objects.in_bulk(product_ids)
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise SaleError(f"Products not found: {missing}")

    with transaction.atomic():
        # Lock rows in product id order to avoid deadlocks
        stocks = lock_stock(store, product_ids)

        # Check every line before touching anything
        for item in items:
            product = products[item['product_id']]
            row = stocks.get(product.pk)
            available = row.quantity if row else 0
            if available < item['quantity']:
                logger.warning(
                    f"Sale rejected at store {store.pk}: {product.sku} "
                    f"requested {item['quantity']}, available {available}"
                )
                raise InsufficientStockError(product, item['quantity'], available)

        lines = []
        for item in items:
            product = products[item['product_id']]
            price = item.get('price')
            price = product.price if price is None else Decimal(price)
            lines.append((product, item['quantity'], price))

        total = sum((price * quantity for _, quantity, price in lines), Decimal('0.00'))

        sale = Sale.objects.create(
            store=store,
            user_id=requester.user_id,
            total=total,
            status=Sale.Status.COMPLETED,
            notes=notes
        )

        for product, quantity, price in lines:
            SaleItem.objects.create(sale=sale, product=product, quantity=quantity, price=price)
            apply_delta(
                store, product, -quantity,
                reason=StockMovement.Reason.SALE,
                performed_by=sale.user,
                reference=sale.reference,
                stock=stocks[product.pk]
            )

    logger.info(f"Recorded {sale.reference} at store {store.pk}: {len(lines)} items, total {total}")
    return sale
