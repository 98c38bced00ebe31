"""
Inventory ledger.

StoreStock quantities change only through ``apply_delta``. Every call locks
the (store, product) row, refuses any change that would drive the quantity
below zero and appends a StockMovement describing the change.

The ledger never opens its own transaction boundary for the caller's work:
callers wrap the triggering row change (a sale, a delivery completion, an
adjustment) and every delta in one ``transaction.atomic()`` block so that a
failure anywhere rolls the whole unit back.
"""
import logging
from typing import Dict, Iterable

from django.db import transaction
from django.db.models import Sum

from .models import StoreStock

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger failures."""
    pass


class InsufficientStockError(LedgerError):
    """Raised when a negative delta exceeds the available quantity."""
    def __init__(self, product, requested: int, available: int):
        self.product = product
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product.name}. "
            f"Available: {available}, Requested: {requested}"
        )


class LedgerInvariantError(LedgerError):
    """Raised when a delta cannot be applied to the ledger at all."""
    pass


def lock_stock(store, product_ids: Iterable[int]) -> Dict[int, StoreStock]:
    """Lock the store's StoreStock rows for ``product_ids``.

    Rows are locked in product id order so concurrent units of work touching
    overlapping products acquire locks in the same sequence.
    """
    rows = StoreStock.objects.select_for_update().select_related('product').filter(
        store=store,
        product_id__in=list(product_ids)
    ).order_by('product_id')
    return {row.product_id: row for row in rows}


def available_quantity(store, product) -> int:
    row = StoreStock.objects.filter(store=store, product=product).only('quantity').first()
    return row.quantity if row else 0


def product_total_stock(product) -> int:
    """Derived product-level stock: the sum of every store's quantity."""
    total = StoreStock.objects.filter(product=product).aggregate(total=Sum('quantity'))['total']
    return total or 0


def apply_delta(store, product, delta: int, *, reason, performed_by=None,
                reference='', notes='', stock=None) -> StoreStock:
    """
    Apply a signed quantity change to the (store, product) ledger entry.

    Args:
        store: Store whose stock changes
        product: Product whose stock changes
        delta: Signed quantity change, never zero
        reason: StockMovement.Reason value
        performed_by: User responsible for the change
        reference: Identifier of the triggering record (e.g. ``SALE-12``)
        notes: Free text stored on the movement
        stock: The already locked StoreStock row, if the caller holds one

    Returns:
        The updated StoreStock row

    Raises:
        InsufficientStockError: If the delta would make the quantity negative
        LedgerInvariantError: If the delta is zero or no row exists for a
            negative delta
    """
    from stock.models import StockMovement

    if delta == 0:
        raise LedgerInvariantError('Stock delta must be non-zero')

    with transaction.atomic():
        if stock is None:
            stock = lock_stock(store, [product.pk]).get(product.pk)

        if stock is None:
            if delta < 0:
                raise LedgerInvariantError(
                    f"{product.name} has no stock record in {store.name}"
                )
            stock = StoreStock.objects.create(store=store, product=product, quantity=0)

        quantity_before = stock.quantity
        quantity_after = quantity_before + delta
        if quantity_after < 0:
            raise InsufficientStockError(product, -delta, quantity_before)

        stock.quantity = quantity_after
        stock.save(update_fields=['quantity', 'updated_at'])

        StockMovement.objects.create(
            store=store,
            product=product,
            delta=delta,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            reason=reason,
            reference=reference or '',
            notes=notes or '',
            performed_by=performed_by
        )

    logger.info(
        f"Stock {product.sku} @ store {store.pk}: {quantity_before} -> {quantity_after} ({reason})"
    )
    return stock
