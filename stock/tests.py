"""
Tests for the Stock module.
Tests for: StockMovement model, manual adjustments, movement history and low stock reporting.
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from inventory.ledger import apply_delta
from inventory.models import StoreStock
from stock.models import StockMovement
from stock.serializers import StockAdjustmentSerializer


ADJUST_URL = '/api/stock/adjust/'


def adjust(client, store, product, adjustment_type, quantity, **extra):
    data = {
        'store_id': store.pk,
        'product_id': product.pk,
        'adjustment_type': adjustment_type,
        'quantity': quantity,
    }
    data.update(extra)
    return client.post(ADJUST_URL, data, format='json')


# ============== Model Tests ==============

@pytest.mark.django_db
class TestStockMovementModel:

    def test_movement_ordering_newest_first(self, store, product, store_stock):
        apply_delta(store, product, 1, reason=StockMovement.Reason.ADJUSTMENT)
        apply_delta(store, product, -2, reason=StockMovement.Reason.SALE)
        movements = list(StockMovement.objects.all())
        assert movements[0].delta == -2
        assert movements[1].delta == 1
        assert movements[0].quantity_before == movements[1].quantity_after
        store_stock.refresh_from_db()
        assert store_stock.quantity == 19

    def test_str(self, store, product, store_stock):
        apply_delta(store, product, 3, reason=StockMovement.Reason.DELIVERY)
        movement = StockMovement.objects.get()
        assert 'X1' in str(movement)


# ============== Serializer Tests ==============

class TestStockAdjustmentSerializer:

    def test_valid_in(self):
        serializer = StockAdjustmentSerializer(data={
            'store_id': 1, 'product_id': 1, 'adjustment_type': 'IN', 'quantity': 5
        })
        assert serializer.is_valid()

    def test_set_to_zero_allowed(self):
        serializer = StockAdjustmentSerializer(data={
            'store_id': 1, 'product_id': 1, 'adjustment_type': 'SET', 'quantity': 0
        })
        assert serializer.is_valid()

    def test_out_requires_positive_quantity(self):
        serializer = StockAdjustmentSerializer(data={
            'store_id': 1, 'product_id': 1, 'adjustment_type': 'OUT', 'quantity': 0
        })
        assert not serializer.is_valid()
        assert 'quantity' in serializer.errors

    def test_unknown_type(self):
        serializer = StockAdjustmentSerializer(data={
            'store_id': 1, 'product_id': 1, 'adjustment_type': 'MOVE', 'quantity': 1
        })
        assert not serializer.is_valid()
        assert 'adjustment_type' in serializer.errors


# ============== Adjustment API Tests ==============

@pytest.mark.django_db
class TestStockAdjustment:

    def test_adjust_in(self, admin_client, admin_user, store, product, store_stock):
        response = adjust(admin_client, store, product, 'IN', 5, reference='COUNT-7', notes='Recount')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['stock']['quantity'] == 25
        movement = response.data['movement']
        assert movement['delta'] == 5
        assert movement['quantity_before'] == 20
        assert movement['quantity_after'] == 25
        assert movement['reason'] == StockMovement.Reason.ADJUSTMENT
        assert movement['reference'] == 'COUNT-7'
        assert movement['performed_by'] == admin_user.pk

    def test_adjust_out(self, admin_client, store, product, store_stock):
        response = adjust(admin_client, store, product, 'OUT', 4)
        assert response.status_code == status.HTTP_200_OK
        store_stock.refresh_from_db()
        assert store_stock.quantity == 16

    def test_adjust_out_beyond_available(self, admin_client, store, product, store_stock):
        response = adjust(admin_client, store, product, 'OUT', 21)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        store_stock.refresh_from_db()
        assert store_stock.quantity == 20
        assert not StockMovement.objects.exists()

    def test_adjust_set(self, admin_client, store, product, store_stock):
        response = adjust(admin_client, store, product, 'SET', 12)
        assert response.status_code == status.HTTP_200_OK
        assert response.data['movement']['delta'] == -8
        store_stock.refresh_from_db()
        assert store_stock.quantity == 12

    def test_adjust_set_unchanged(self, admin_client, store, product, store_stock):
        response = adjust(admin_client, store, product, 'SET', 20)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not StockMovement.objects.exists()

    def test_adjust_in_creates_missing_row(self, admin_client, other_store, product):
        response = adjust(admin_client, other_store, product, 'IN', 3)
        assert response.status_code == status.HTTP_200_OK
        assert StoreStock.objects.get(store=other_store, product=product).quantity == 3

    def test_adjust_out_without_row(self, admin_client, other_store, product):
        response = adjust(admin_client, other_store, product, 'OUT', 1)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_store(self, admin_client, product):
        response = admin_client.post(ADJUST_URL, {
            'store_id': 99999, 'product_id': product.pk, 'adjustment_type': 'IN', 'quantity': 1
        }, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_sales_user_cannot_adjust(self, sales_client, store, product, store_stock):
        response = adjust(sales_client, store, product, 'IN', 5)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        store_stock.refresh_from_db()
        assert store_stock.quantity == 20

    def test_unauthenticated(self, api_client, store, product):
        response = adjust(api_client, store, product, 'IN', 5)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ============== Movement History Tests ==============

@pytest.mark.django_db
class TestStockMovements:

    @pytest.fixture
    def movements(self, store, other_store, product, product2, store_stock, other_store_stock):
        apply_delta(store, product, -2, reason=StockMovement.Reason.SALE)
        apply_delta(other_store, product2, 5, reason=StockMovement.Reason.DELIVERY)

    def test_admin_sees_all(self, admin_client, movements):
        response = admin_client.get('/api/stock/movements/')
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 2

    def test_sales_sees_assigned_stores_only(self, sales_client, store, movements):
        response = sales_client.get('/api/stock/movements/')
        assert len(response.data) == 1
        assert response.data[0]['store'] == store.pk

    def test_filters(self, admin_client, product2, movements):
        response = admin_client.get('/api/stock/movements/', {'reason': 'delivery'})
        assert [m['product'] for m in response.data] == [product2.pk]

        response = admin_client.get('/api/stock/movements/', {'product_id': product2.pk})
        assert len(response.data) == 1

    def test_date_range_filter(self, admin_client, movements):
        today = timezone.now().date()
        response = admin_client.get('/api/stock/movements/', {
            'start_date': today.isoformat(),
            'end_date': (today + timedelta(days=1)).isoformat(),
        })
        assert len(response.data) == 2

        response = admin_client.get('/api/stock/movements/', {'end_date': (today - timedelta(days=1)).isoformat()})
        assert response.data == []

    @pytest.mark.parametrize('params', [
        {'store_id': 'abc'},
        {'product_id': '1.5'},
        {'start_date': 'garbage'},
        {'end_date': '2024-13-40'},
    ])
    def test_malformed_filters_are_rejected(self, admin_client, movements, params):
        response = admin_client.get('/api/stock/movements/', params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert set(params) <= set(response.data)


# ============== Low Stock Tests ==============

@pytest.mark.django_db
class TestLowStock:

    def test_low_stock_rows(self, admin_client, store_stock, store_stock2, other_store_stock):
        # store_stock 20 > 5, store_stock2 8 <= 10, other_store_stock 30 > 10
        response = admin_client.get('/api/stock/low-stock/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['stocks'][0]['id'] == store_stock2.pk
        assert response.data['stocks'][0]['is_low_stock'] is True

    def test_threshold_is_inclusive(self, admin_client, store, product, store_stock):
        StoreStock.objects.filter(pk=store_stock.pk).update(quantity=5)
        response = admin_client.get('/api/stock/low-stock/')
        assert response.data['count'] == 1

    def test_out_of_stock_included(self, admin_client, store, product, store_stock):
        StoreStock.objects.filter(pk=store_stock.pk).update(quantity=0)
        response = admin_client.get('/api/stock/low-stock/')
        assert response.data['stocks'][0]['stock_status'] == 'OUT_OF_STOCK'

    def test_scoped_to_assigned_stores(self, other_sales_client, store_stock2):
        response = other_sales_client.get('/api/stock/low-stock/')
        assert response.data['count'] == 0

    def test_store_filter(self, admin_client, store, other_store, store_stock2):
        response = admin_client.get('/api/stock/low-stock/', {'store_id': other_store.pk})
        assert response.data['count'] == 0

        response = admin_client.get('/api/stock/low-stock/', {'store_id': 'abc'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
