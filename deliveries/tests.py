"""
Tests for the Deliveries module.
Tests for: delivery lifecycle, stock increments on completion, ownership rules and the API.
"""
from unittest.mock import patch

import pytest
from rest_framework import status
from rest_framework.exceptions import PermissionDenied

from deliveries.models import Delivery, DeliveryItem
from deliveries.services import (
    DeliveryStateError, can_transition, create_delivery, delete_delivery, update_delivery
)
from inventory.ledger import LedgerInvariantError, apply_delta
from inventory.models import StoreStock
from stock.models import StockMovement
from users.access import Requester


@pytest.fixture
def delivery(sales_user, store, product, product2):
    """PENDING delivery of 5 x product and 4 x product2 to store"""
    return create_delivery(
        Requester.from_user(sales_user),
        store,
        [
            {'product_id': product.pk, 'quantity': 5},
            {'product_id': product2.pk, 'quantity': 4},
        ],
        notes='Weekly restock'
    )


def quantity_of(store, product):
    row = StoreStock.objects.filter(store=store, product=product).first()
    return row.quantity if row else 0


# ============== Transition Table Tests ==============

class TestTransitions:

    @pytest.mark.parametrize('current,target', [
        (Delivery.Status.PENDING, Delivery.Status.IN_TRANSIT),
        (Delivery.Status.PENDING, Delivery.Status.DELIVERED),
        (Delivery.Status.PENDING, Delivery.Status.CANCELLED),
        (Delivery.Status.IN_TRANSIT, Delivery.Status.DELIVERED),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize('current,target', [
        (Delivery.Status.IN_TRANSIT, Delivery.Status.CANCELLED),
        (Delivery.Status.IN_TRANSIT, Delivery.Status.PENDING),
        (Delivery.Status.DELIVERED, Delivery.Status.PENDING),
        (Delivery.Status.DELIVERED, Delivery.Status.CANCELLED),
        (Delivery.Status.CANCELLED, Delivery.Status.DELIVERED),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)


# ============== Service Tests ==============

@pytest.mark.django_db
class TestDeliveryService:

    def test_create_is_pending_without_stock_change(self, delivery, store, product, store_stock):
        assert delivery.status == Delivery.Status.PENDING
        assert delivery.items.count() == 2
        assert delivery.completed_at is None
        assert quantity_of(store, product) == 20
        assert not StockMovement.objects.exists()

    def test_admin_cannot_create(self, admin_user, store, product):
        with pytest.raises(PermissionDenied):
            create_delivery(Requester.from_user(admin_user), store, [
                {'product_id': product.pk, 'quantity': 1}
            ])

    def test_unassigned_salesperson_cannot_create(self, other_sales_user, store, product):
        with pytest.raises(PermissionDenied):
            create_delivery(Requester.from_user(other_sales_user), store, [
                {'product_id': product.pk, 'quantity': 1}
            ])

    def test_create_rejects_unknown_product(self, sales_user, store):
        with pytest.raises(DeliveryStateError):
            create_delivery(Requester.from_user(sales_user), store, [
                {'product_id': 99999, 'quantity': 1}
            ])
        assert not Delivery.objects.exists()

    def test_delivered_increments_stock_once(self, delivery, sales_user, store, product, product2,
                                             store_stock):
        requester = Requester.from_user(sales_user)
        updated = update_delivery(requester, delivery, status=Delivery.Status.DELIVERED)

        assert updated.status == Delivery.Status.DELIVERED
        assert updated.completed_at is not None
        assert quantity_of(store, product) == 25
        # No row existed for product2, the ledger creates it
        assert quantity_of(store, product2) == 4

        movements = StockMovement.objects.filter(reference=f'DELIVERY-{delivery.pk}')
        assert movements.count() == 2
        assert all(m.reason == StockMovement.Reason.DELIVERY for m in movements)
        assert all(m.performed_by == sales_user for m in movements)

        with pytest.raises(DeliveryStateError):
            update_delivery(requester, delivery, status=Delivery.Status.DELIVERED)
        assert quantity_of(store, product) == 25

    def test_in_transit_then_delivered(self, delivery, sales_user, store, product, store_stock):
        requester = Requester.from_user(sales_user)
        update_delivery(requester, delivery, status=Delivery.Status.IN_TRANSIT)
        assert quantity_of(store, product) == 20

        update_delivery(requester, delivery, status=Delivery.Status.DELIVERED)
        assert quantity_of(store, product) == 25

    def test_in_transit_cannot_be_cancelled(self, delivery, sales_user):
        requester = Requester.from_user(sales_user)
        update_delivery(requester, delivery, status=Delivery.Status.IN_TRANSIT)
        with pytest.raises(DeliveryStateError):
            update_delivery(requester, delivery, status=Delivery.Status.CANCELLED)

        delivery.refresh_from_db()
        assert delivery.status == Delivery.Status.IN_TRANSIT

    def test_cancel_does_not_touch_stock(self, delivery, sales_user, store, product, store_stock):
        updated = update_delivery(
            Requester.from_user(sales_user), delivery, status=Delivery.Status.CANCELLED
        )
        assert updated.status == Delivery.Status.CANCELLED
        assert updated.completed_at is None
        assert quantity_of(store, product) == 20
        assert not StockMovement.objects.exists()

    def test_failed_increment_rolls_back_completion(self, delivery, sales_user, store, product, product2,
                                                     store_stock):
        calls = []

        def fail_on_second_item(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise LedgerInvariantError('Stock row could not be written')
            return apply_delta(*args, **kwargs)

        with patch('deliveries.services.apply_delta', side_effect=fail_on_second_item):
            with pytest.raises(LedgerInvariantError):
                update_delivery(
                    Requester.from_user(sales_user), delivery, status=Delivery.Status.DELIVERED
                )

        assert len(calls) == 2
        delivery.refresh_from_db()
        assert delivery.status == Delivery.Status.PENDING
        assert delivery.completed_at is None
        assert quantity_of(store, product) == 20
        assert quantity_of(store, product2) == 0
        assert not StockMovement.objects.exists()

    @pytest.mark.parametrize('steps', [
        [],
        [Delivery.Status.IN_TRANSIT],
        [Delivery.Status.CANCELLED],
    ])
    def test_same_status_is_rejected(self, delivery, sales_user, steps):
        requester = Requester.from_user(sales_user)
        for step in steps:
            update_delivery(requester, delivery, status=step)
        current = Delivery.objects.get(pk=delivery.pk).status

        with pytest.raises(DeliveryStateError):
            update_delivery(requester, delivery, status=current, notes='Unchanged')

        delivery.refresh_from_db()
        assert delivery.status == current
        assert delivery.notes == 'Weekly restock'

    def test_notes_only_update(self, delivery, sales_user):
        updated = update_delivery(Requester.from_user(sales_user), delivery, notes='Gate 3')
        assert updated.notes == 'Gate 3'
        assert updated.status == Delivery.Status.PENDING

    def test_non_owner_cannot_update(self, delivery, other_sales_user, admin_user):
        for user in (other_sales_user, admin_user):
            with pytest.raises(PermissionDenied):
                update_delivery(
                    Requester.from_user(user), delivery, status=Delivery.Status.CANCELLED
                )

    def test_delete_pending(self, delivery, sales_user):
        delete_delivery(Requester.from_user(sales_user), delivery)
        assert not Delivery.objects.filter(pk=delivery.pk).exists()
        assert not DeliveryItem.objects.exists()

    def test_delete_after_pending_is_rejected(self, delivery, sales_user):
        requester = Requester.from_user(sales_user)
        update_delivery(requester, delivery, status=Delivery.Status.IN_TRANSIT)
        with pytest.raises(DeliveryStateError):
            delete_delivery(requester, delivery)
        assert Delivery.objects.filter(pk=delivery.pk).exists()


# ============== API Tests ==============

@pytest.mark.django_db
class TestDeliveryAPI:

    def test_create_delivery(self, sales_client, sales_user, store, product, store_stock):
        response = sales_client.post('/api/deliveries/', {
            'store_id': store.pk,
            'items': [{'product_id': product.pk, 'quantity': 6}],
            'notes': 'Morning drop'
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == Delivery.Status.PENDING
        assert response.data['salesman'] == sales_user.pk
        assert response.data['items'][0]['quantity'] == 6
        assert quantity_of(store, product) == 20

    def test_create_for_unassigned_store(self, sales_client, other_store, product):
        response = sales_client.post('/api/deliveries/', {
            'store_id': other_store.pk,
            'items': [{'product_id': product.pk, 'quantity': 1}]
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_store_answers_like_unassigned_store(self, sales_client, other_store, product):
        items = [{'product_id': product.pk, 'quantity': 1}]
        missing = sales_client.post('/api/deliveries/', {'store_id': 99999, 'items': items}, format='json')
        unassigned = sales_client.post(
            '/api/deliveries/', {'store_id': other_store.pk, 'items': items}, format='json'
        )

        assert missing.status_code == status.HTTP_403_FORBIDDEN
        assert unassigned.status_code == status.HTTP_403_FORBIDDEN
        assert missing.data == unassigned.data
        assert not Delivery.objects.exists()

    def test_admin_cannot_create(self, admin_client, store, product):
        response = admin_client.post('/api/deliveries/', {
            'store_id': store.pk,
            'items': [{'product_id': product.pk, 'quantity': 1}]
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_validation(self, sales_client, store, product):
        response = sales_client.post('/api/deliveries/', {
            'store_id': store.pk,
            'items': [{'product_id': product.pk, 'quantity': 0}]
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = sales_client.post('/api/deliveries/', {
            'store_id': store.pk,
            'items': []
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_is_scoped_to_creator(self, delivery, sales_client, other_sales_client, admin_client):
        assert len(sales_client.get('/api/deliveries/').data) == 1
        assert len(other_sales_client.get('/api/deliveries/').data) == 0
        assert len(admin_client.get('/api/deliveries/').data) == 1

    def test_list_status_filter(self, delivery, admin_client):
        response = admin_client.get('/api/deliveries/', {'status': 'pending'})
        assert len(response.data) == 1
        response = admin_client.get('/api/deliveries/', {'status': 'DELIVERED'})
        assert len(response.data) == 0

    def test_detail(self, delivery, sales_client, other_sales_client, admin_client):
        url = f'/api/deliveries/{delivery.pk}/'
        assert sales_client.get(url).status_code == status.HTTP_200_OK
        assert admin_client.get(url).status_code == status.HTTP_200_OK
        assert other_sales_client.get(url).status_code == status.HTTP_403_FORBIDDEN
        assert sales_client.get('/api/deliveries/99999/').status_code == status.HTTP_404_NOT_FOUND

    def test_patch_delivered_applies_stock_once(self, delivery, sales_client, store, product, store_stock):
        url = f'/api/deliveries/{delivery.pk}/'
        response = sales_client.patch(url, {'status': 'DELIVERED'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == Delivery.Status.DELIVERED
        assert response.data['completed_at'] is not None
        assert quantity_of(store, product) == 25

        response = sales_client.patch(url, {'status': 'DELIVERED'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert quantity_of(store, product) == 25

    def test_patch_invalid_transition(self, delivery, sales_client):
        url = f'/api/deliveries/{delivery.pk}/'
        sales_client.patch(url, {'status': 'CANCELLED'}, format='json')
        response = sales_client.patch(url, {'status': 'IN_TRANSIT'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_patch_same_status(self, delivery, sales_client):
        url = f'/api/deliveries/{delivery.pk}/'
        response = sales_client.patch(url, {'status': 'PENDING'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data

    def test_list_rejects_malformed_store_filter(self, delivery, admin_client):
        response = admin_client.get('/api/deliveries/', {'store_id': 'abc'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'store_id' in response.data

    def test_list_store_filter(self, delivery, admin_client, store, other_store):
        assert len(admin_client.get('/api/deliveries/', {'store_id': store.pk}).data) == 1
        assert len(admin_client.get('/api/deliveries/', {'store_id': other_store.pk}).data) == 0

    def test_patch_unknown_status(self, delivery, sales_client):
        response = sales_client.patch(
            f'/api/deliveries/{delivery.pk}/', {'status': 'LOST'}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_patch_by_non_owner(self, delivery, other_sales_client, admin_client):
        url = f'/api/deliveries/{delivery.pk}/'
        response = other_sales_client.patch(url, {'status': 'CANCELLED'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
        response = admin_client.patch(url, {'status': 'CANCELLED'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_pending(self, delivery, sales_client):
        response = sales_client.delete(f'/api/deliveries/{delivery.pk}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Delivery.objects.exists()

    def test_delete_delivered_is_rejected(self, delivery, sales_client):
        url = f'/api/deliveries/{delivery.pk}/'
        sales_client.patch(url, {'status': 'DELIVERED'}, format='json')
        response = sales_client.delete(url)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Delivery.objects.filter(pk=delivery.pk).exists()

    def test_put_not_allowed(self, delivery, sales_client):
        response = sales_client.put(
            f'/api/deliveries/{delivery.pk}/', {'status': 'DELIVERED'}, format='json'
        )
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
