"""
Tests for the Inventory module.
Tests for: stock level classification, the inventory ledger and the products API.
"""
import pytest
from decimal import Decimal
from django.db import IntegrityError, transaction
from rest_framework import status

from inventory.ledger import (
    InsufficientStockError, LedgerInvariantError,
    apply_delta, available_quantity, lock_stock, product_total_stock
)
from inventory.levels import (
    IN_STOCK, LOW_STOCK, OUT_OF_STOCK, is_low_stock, is_out_of_stock, stock_status
)
from inventory.models import Product, StoreStock
from stock.models import StockMovement


# ============== Stock Level Tests ==============

class TestStockLevels:

    def test_is_low_stock_threshold(self):
        assert is_low_stock(5, 10)
        assert is_low_stock(10, 10)
        assert not is_low_stock(11, 10)

    def test_is_out_of_stock(self):
        assert is_out_of_stock(0)
        assert not is_out_of_stock(1)

    def test_stock_status(self):
        assert stock_status(0, 10) == OUT_OF_STOCK
        assert stock_status(10, 10) == LOW_STOCK
        assert stock_status(11, 10) == IN_STOCK

    def test_zero_threshold(self):
        assert stock_status(0, 0) == OUT_OF_STOCK
        assert stock_status(1, 0) == IN_STOCK


# ============== Ledger Tests ==============

@pytest.mark.django_db
class TestLedger:

    def test_positive_delta_creates_row(self, store, product, admin_user):
        stock = apply_delta(
            store, product, 7,
            reason=StockMovement.Reason.DELIVERY,
            performed_by=admin_user,
            reference='DELIVERY-1'
        )
        assert stock.quantity == 7
        movement = StockMovement.objects.get(store=store, product=product)
        assert movement.delta == 7
        assert movement.quantity_before == 0
        assert movement.quantity_after == 7
        assert movement.reference == 'DELIVERY-1'

    def test_negative_delta_decrements(self, store, product, store_stock):
        apply_delta(store, product, -5, reason=StockMovement.Reason.SALE)
        assert available_quantity(store, product) == 15

    def test_overdraw_is_rejected_without_change(self, store, product, store_stock):
        with pytest.raises(InsufficientStockError) as exc:
            apply_delta(store, product, -21, reason=StockMovement.Reason.SALE)

        assert exc.value.available == 20
        assert exc.value.requested == 21
        store_stock.refresh_from_db()
        assert store_stock.quantity == 20
        assert not StockMovement.objects.exists()

    def test_exact_drawdown_to_zero(self, store, product, store_stock):
        stock = apply_delta(store, product, -20, reason=StockMovement.Reason.SALE)
        assert stock.quantity == 0

    def test_negative_delta_without_row(self, store, product):
        with pytest.raises(LedgerInvariantError):
            apply_delta(store, product, -1, reason=StockMovement.Reason.SALE)
        assert not StoreStock.objects.exists()

    def test_zero_delta_is_rejected(self, store, product, store_stock):
        with pytest.raises(LedgerInvariantError):
            apply_delta(store, product, 0, reason=StockMovement.Reason.ADJUSTMENT)

    def test_lock_stock_returns_rows_by_product(self, store, product, product2, store_stock, store_stock2):
        rows = lock_stock(store, [product2.pk, product.pk])
        assert set(rows) == {product.pk, product2.pk}
        assert rows[product.pk].quantity == 20

    def test_product_total_stock_sums_stores(self, store, other_store, product):
        StoreStock.objects.create(store=store, product=product, quantity=4)
        StoreStock.objects.create(store=other_store, product=product, quantity=6)
        assert product_total_stock(product) == 10

    def test_database_rejects_negative_quantity(self, store_stock):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StoreStock.objects.filter(pk=store_stock.pk).update(quantity=-1)


# ============== StoreStock Model Tests ==============

@pytest.mark.django_db
class TestStoreStockModel:

    def test_is_low_stock_property(self, store, product):
        stock = StoreStock.objects.create(store=store, product=product, quantity=5)
        assert stock.is_low_stock
        assert stock.stock_status == LOW_STOCK

    def test_unique_store_product(self, store_stock):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StoreStock.objects.create(store=store_stock.store, product=store_stock.product)


# ============== Product API Tests ==============

@pytest.mark.django_db
class TestProductAPI:

    def test_admin_lists_all_products_with_stock(self, admin_client, product, product2,
                                                 store_stock, other_store_stock):
        response = admin_client.get('/api/products/')
        assert response.status_code == status.HTTP_200_OK
        by_sku = {p['sku']: p for p in response.data}
        assert by_sku['X1']['stock'] == 20
        assert by_sku['X2-ITEM']['stock'] == 30
        assert by_sku['X1']['stores'][0]['stock'] == 20

    def test_sales_lists_products_in_assigned_stores(self, sales_client, product, product2,
                                                     store_stock, other_store_stock):
        response = sales_client.get('/api/products/')
        assert response.status_code == status.HTTP_200_OK
        assert [p['sku'] for p in response.data] == ['X1']

    def test_sales_stock_breakdown_hides_other_stores(self, sales_client, store, product2,
                                                      store_stock2, other_store_stock):
        response = sales_client.get('/api/products/')
        product_data = response.data[0]
        assert [s['id'] for s in product_data['stores']] == [store.pk]
        assert product_data['stock'] == 8

    def test_sales_cannot_see_unstocked_product(self, sales_client, store, product2, other_store_stock):
        response = sales_client.get(f'/api/products/{product2.pk}/')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_product_is_404(self, admin_client):
        response = admin_client.get('/api/products/99999/')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_search_and_category_filters(self, admin_client, product, product2):
        response = admin_client.get('/api/products/', {'search': 'second'})
        assert [p['sku'] for p in response.data] == ['X2-ITEM']

        response = admin_client.get('/api/products/', {'category': 'general'})
        assert len(response.data) == 2

    def test_store_filter(self, admin_client, other_store, product, product2, store_stock, other_store_stock):
        response = admin_client.get('/api/products/', {'store_id': other_store.pk})
        assert [p['sku'] for p in response.data] == ['X2-ITEM']

        response = admin_client.get('/api/products/', {'store_id': 'abc'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'store_id' in response.data

    def test_low_stock_filter(self, admin_client, store, product, product2, store_stock, store_stock2):
        # product: 20 > 5, product2: 8 <= 10
        response = admin_client.get('/api/products/', {'low_stock': 'true'})
        assert [p['sku'] for p in response.data] == ['X2-ITEM']
        assert response.data[0]['stock_status'] == LOW_STOCK

    def test_admin_creates_product_with_opening_stock(self, admin_client, admin_user, store):
        response = admin_client.post('/api/products/', {
            'sku': 'NEW_SKU-1',
            'name': 'New Product',
            'price': '19.99',
            'min_stock_level': 3,
            'category': 'Audio',
            'initial_stock': [{'store_id': store.pk, 'quantity': 12}]
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['stock'] == 12
        product = Product.objects.get(sku='NEW_SKU-1')
        assert product.created_by == admin_user
        movement = StockMovement.objects.get(product=product)
        assert movement.reason == StockMovement.Reason.ADJUSTMENT
        assert movement.delta == 12

    def test_min_stock_level_defaults_to_ten(self, admin_client):
        response = admin_client.post('/api/products/', {
            'sku': 'DEFAULTS',
            'name': 'Defaults',
            'price': '1.00'
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['min_stock_level'] == 10

    def test_opening_stock_for_unknown_store(self, admin_client):
        response = admin_client.post('/api/products/', {
            'sku': 'ORPHAN',
            'name': 'Orphan',
            'price': '1.00',
            'initial_stock': [{'store_id': 99999, 'quantity': 1}]
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Product.objects.filter(sku='ORPHAN').exists()

    @pytest.mark.parametrize('field,value', [
        ('sku', 'ab'),
        ('sku', 'bad sku!'),
        ('name', 'A'),
        ('price', '-1.00'),
        ('price', '1000000.01'),
        ('category', 'x'),
    ])
    def test_product_validation(self, admin_client, field, value):
        data = {'sku': 'VALID-1', 'name': 'Valid', 'price': '5.00'}
        data[field] = value
        response = admin_client.post('/api/products/', data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert field in response.data

    def test_duplicate_sku(self, admin_client, product):
        response = admin_client.post('/api/products/', {
            'sku': 'X1', 'name': 'Clone', 'price': '1.00'
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'sku' in response.data

    def test_sales_cannot_create_product(self, sales_client):
        response = sales_client.post('/api/products/', {
            'sku': 'NOPE', 'name': 'Nope', 'price': '1.00'
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_updates_product(self, admin_client, product):
        response = admin_client.patch(f'/api/products/{product.pk}/', {'price': '12.50'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        product.refresh_from_db()
        assert product.price == Decimal('12.50')

    def test_opening_stock_not_accepted_on_update(self, admin_client, product, store):
        response = admin_client.patch(f'/api/products/{product.pk}/', {
            'initial_stock': [{'store_id': store.pk, 'quantity': 5}]
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_unused_product(self, admin_client, product, store_stock):
        response = admin_client.delete(f'/api/products/{product.pk}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Product.objects.filter(pk=product.pk).exists()

    def test_delete_sold_product_is_rejected(self, admin_client, sales_user, store, product):
        from sales.models import Sale, SaleItem
        sale = Sale.objects.create(store=store, user=sales_user, total=Decimal('10.00'))
        SaleItem.objects.create(sale=sale, product=product, quantity=1, price=Decimal('10.00'))

        response = admin_client.delete(f'/api/products/{product.pk}/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Product.objects.filter(pk=product.pk).exists()
