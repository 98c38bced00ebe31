"""
Delivery lifecycle.

    PENDING -> IN_TRANSIT -> DELIVERED
    PENDING -> DELIVERED
    PENDING -> CANCELLED

DELIVERED and CANCELLED are terminal. Stock is added to the destination
store exactly once, in the same transaction that first moves a delivery into
DELIVERED. The delivery row is locked for the duration so two concurrent
completions cannot both apply the increment.
"""
import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from inventory.ledger import apply_delta
from inventory.models import Product
from stock.models import StockMovement
from users.access import Action, Resource, check_access
from .models import Delivery, DeliveryItem

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Delivery.Status.PENDING: {
        Delivery.Status.IN_TRANSIT,
        Delivery.Status.DELIVERED,
        Delivery.Status.CANCELLED,
    },
    Delivery.Status.IN_TRANSIT: {Delivery.Status.DELIVERED},
    Delivery.Status.DELIVERED: set(),
    Delivery.Status.CANCELLED: set(),
}


class DeliveryStateError(Exception):
    """Raised when a delivery change is not allowed in its current state."""
    pass


def can_transition(current, target):
    return target in TRANSITIONS.get(current, set())


def create_delivery(requester, store, items: List[Dict], notes: Optional[str] = None) -> Delivery:
    """
    Create a PENDING delivery. No stock moves until it is delivered.

    Args:
        items: List of dicts with 'product_id' and 'quantity'

    Raises:
        PermissionDenied: If the requester is not a sales user assigned to the store
        DeliveryStateError: If the items are invalid
    """
    check_access(requester, Resource.DELIVERY, Action.CREATE, store)

    if not items:
        raise DeliveryStateError('At least one item is required')

    product_ids = [item['product_id'] for item in items]
    if len(product_ids) != len(set(product_ids)):
        raise DeliveryStateError('Each product may appear only once')
    if any(item['quantity'] < 1 for item in items):
        raise DeliveryStateError('Quantity must be a positive integer')

    products = Product.objects.in_bulk(product_ids)
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise DeliveryStateError(f"Products not found: {missing}")

    with transaction.atomic():
        delivery = Delivery.objects.create(
            salesman_id=requester.user_id,
            store=store,
            status=Delivery.Status.PENDING,
            notes=notes
        )
        DeliveryItem.objects.bulk_create([
            DeliveryItem(delivery=delivery, product=products[item['product_id']], quantity=item['quantity'])
            for item in items
        ])

    logger.info(f"Created {delivery.reference} to store {store.pk} with {len(items)} items")
    return delivery


def update_delivery(requester, delivery: Delivery, status=None, notes=None) -> Delivery:
    """
    Change a delivery's status and/or notes.

    Entering DELIVERED adds every item's quantity to the destination store's
    stock and stamps ``completed_at``.

    Raises:
        PermissionDenied: If the requester is not the salesman who created it
        DeliveryStateError: If the status change is not an allowed transition,
            including a request for the status the delivery already has
    """
    check_access(requester, Resource.DELIVERY, Action.UPDATE, delivery)

    with transaction.atomic():
        locked = Delivery.objects.select_for_update().select_related('store').get(pk=delivery.pk)
        current = locked.status
        completing = False

        if status == current:
            raise DeliveryStateError(f"Delivery is already {current}")
        if status is not None:
            if not can_transition(current, status):
                raise DeliveryStateError(
                    f"Cannot change delivery status from {current} to {status}"
                )
            locked.status = status
            completing = status == Delivery.Status.DELIVERED

        if notes is not None:
            locked.notes = notes

        if completing:
            locked.completed_at = timezone.now()
            for item in locked.items.select_related('product').order_by('product_id'):
                apply_delta(
                    locked.store, item.product, item.quantity,
                    reason=StockMovement.Reason.DELIVERY,
                    performed_by=locked.salesman,
                    reference=locked.reference
                )

        locked.save()

    if completing:
        logger.info(f"{locked.reference} delivered to store {locked.store_id}")
    elif locked.status != current:
        logger.info(f"{locked.reference} moved from {current} to {locked.status}")
    return locked


def delete_delivery(requester, delivery: Delivery) -> None:
    """
    Delete a delivery that has not left PENDING.

    Raises:
        PermissionDenied: If the requester is not the salesman who created it
        DeliveryStateError: If the delivery is no longer PENDING
    """
    check_access(requester, Resource.DELIVERY, Action.DELETE, delivery)

    with transaction.atomic():
        locked = Delivery.objects.select_for_update().get(pk=delivery.pk)
        if locked.status != Delivery.Status.PENDING:
            raise DeliveryStateError(
                f"Only pending deliveries can be deleted (status is {locked.status})"
            )
        reference = locked.reference
        locked.delete()

    logger.info(f"Deleted {reference}")
