"""
Unit Tests for Sales Module
Tests for: record_sale, StoreTransactionListCreateView, TransactionListView,
TransactionDetailView and the summary endpoints
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal
from threading import Barrier
from unittest import skipUnless
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework.test import APITestCase
from rest_framework import status

from inventory.ledger import InsufficientStockError, lock_stock
from inventory.models import Product, StoreStock
from sales.models import Sale, SaleItem
from sales.serializers import SaleCreateSerializer
from sales.services import SaleError, record_sale, validate_sale_items
from stock.models import StockMovement
from stores.models import Store, StoreStaff
from users.access import Requester
from users.models import User


def make_store(name, status=Store.Status.ACTIVE):
    return Store.objects.create(
        name=name,
        owner_name='Owner',
        owner_phone='+6281234567890',
        address='Jl. Thamrin 10',
        city='Jakarta Pusat',
        province='DKI Jakarta',
        latitude=-6.19,
        longitude=106.82,
        status=status
    )


class SalesFixtureMixin:
    """Two stores, an admin and two salespeople, with X1 stocked at the first store"""

    def setUp(self):
        self.admin = User.objects.create_user(
            username='admin@test.com', email='admin@test.com',
            password='testpass123', name='Admin', role=User.Role.ADMIN
        )
        self.seller = User.objects.create_user(
            username='seller@test.com', email='seller@test.com',
            password='testpass123', name='Seller', role=User.Role.SALES
        )
        self.other_seller = User.objects.create_user(
            username='other@test.com', email='other@test.com',
            password='testpass123', name='Other', role=User.Role.SALES
        )
        self.store = make_store('Blok M')
        self.other_store = make_store('Kemang')
        StoreStaff.objects.create(store=self.store, user=self.seller)
        StoreStaff.objects.create(store=self.other_store, user=self.other_seller)

        self.product = Product.objects.create(
            sku='X1', name='Kopi Susu', price=Decimal('10.00'), min_stock_level=5
        )
        self.product2 = Product.objects.create(
            sku='X2', name='Teh Manis', price=Decimal('4.50'), min_stock_level=5
        )
        self.stock = StoreStock.objects.create(store=self.store, product=self.product, quantity=10)
        self.stock2 = StoreStock.objects.create(store=self.store, product=self.product2, quantity=2)

    def requester(self, user):
        return Requester.from_user(user)


class RecordSaleTest(SalesFixtureMixin, TestCase):
    """Test cases for the record_sale service"""

    def test_total_is_sum_of_lines(self):
        sale = record_sale(self.requester(self.seller), self.store, [
            {'product_id': self.product.pk, 'quantity': 3, 'price': Decimal('10.00')},
            {'product_id': self.product2.pk, 'quantity': 2, 'price': Decimal('4.00')},
        ])
        self.assertEqual(sale.total, Decimal('38.00'))
        self.assertEqual(sale.items.count(), 2)
        self.assertEqual(sale.total, sale.calculate_total())

    def test_price_defaults_to_product_price(self):
        sale = record_sale(self.requester(self.seller), self.store, [
            {'product_id': self.product2.pk, 'quantity': 2},
        ])
        self.assertEqual(sale.items.get().price, Decimal('4.50'))
        self.assertEqual(sale.total, Decimal('9.00'))

    def test_stock_is_decremented_with_movements(self):
        sale = record_sale(self.requester(self.seller), self.store, [
            {'product_id': self.product.pk, 'quantity': 3},
        ])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 7)

        movement = StockMovement.objects.get(product=self.product)
        self.assertEqual(movement.delta, -3)
        self.assertEqual(movement.reason, StockMovement.Reason.SALE)
        self.assertEqual(movement.reference, f'SALE-{sale.pk}')
        self.assertEqual(movement.performed_by, self.seller)

    def test_insufficient_stock_rejects_whole_sale(self):
        with self.assertRaises(InsufficientStockError):
            record_sale(self.requester(self.seller), self.store, [
                {'product_id': self.product.pk, 'quantity': 1},
                {'product_id': self.product2.pk, 'quantity': 3},
            ])

        self.stock.refresh_from_db()
        self.stock2.refresh_from_db()
        self.assertEqual(self.stock.quantity, 10)
        self.assertEqual(self.stock2.quantity, 2)
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(SaleItem.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

    def test_product_not_stocked_in_store(self):
        with self.assertRaises(InsufficientStockError):
            record_sale(self.requester(self.other_seller), self.other_store, [
                {'product_id': self.product.pk, 'quantity': 1},
            ])

    def test_admin_cannot_record_sale(self):
        with self.assertRaises(PermissionDenied):
            record_sale(self.requester(self.admin), self.store, [
                {'product_id': self.product.pk, 'quantity': 1},
            ])

    def test_unassigned_salesperson_cannot_record_sale(self):
        with self.assertRaises(PermissionDenied):
            record_sale(self.requester(self.other_seller), self.store, [
                {'product_id': self.product.pk, 'quantity': 1},
            ])

    def test_inactive_store_rejected(self):
        self.store.status = Store.Status.INACTIVE
        self.store.save()
        with self.assertRaises(SaleError):
            record_sale(self.requester(self.seller), self.store, [
                {'product_id': self.product.pk, 'quantity': 1},
            ])

    def test_unknown_product(self):
        with self.assertRaises(SaleError):
            record_sale(self.requester(self.seller), self.store, [
                {'product_id': 99999, 'quantity': 1},
            ])

    def test_check_uses_quantity_read_under_lock(self):
        # Another sale commits between the caller loading the store and the lock
        def sold_elsewhere_first(store, product_ids):
            StoreStock.objects.filter(pk=self.stock.pk).update(quantity=3)
            return lock_stock(store, product_ids)

        with patch('sales.services.lock_stock', side_effect=sold_elsewhere_first):
            with self.assertRaises(InsufficientStockError) as ctx:
                record_sale(self.requester(self.seller), self.store, [
                    {'product_id': self.product.pk, 'quantity': 6},
                ])

        self.assertEqual(ctx.exception.available, 3)
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(StockMovement.objects.exists())


@skipUnless(connection.features.has_select_for_update, 'database does not support row locks')
class ConcurrentSaleTest(SalesFixtureMixin, TransactionTestCase):
    """Sales racing for the same stock row"""

    def sell(self, barrier, quantity):
        try:
            barrier.wait()
            record_sale(self.requester(self.seller), self.store, [
                {'product_id': self.product.pk, 'quantity': quantity},
            ])
            return True
        except InsufficientStockError:
            return False
        finally:
            connection.close()

    def test_concurrent_sales_never_oversell(self):
        # 10 in stock, two sales of 6 each
        barrier = Barrier(2)
        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(lambda _: self.sell(barrier, 6), range(2)))

        self.assertEqual(sorted(results), [False, True])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 4)
        self.assertEqual(Sale.objects.count(), 1)
        self.assertEqual(StockMovement.objects.filter(product=self.product).count(), 1)

    def test_concurrent_sales_within_stock_both_succeed(self):
        barrier = Barrier(2)
        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(lambda _: self.sell(barrier, 5), range(2)))

        self.assertEqual(results, [True, True])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 0)


class ValidateSaleItemsTest(TestCase):
    """Test cases for line item validation"""

    def test_empty_items(self):
        with self.assertRaises(SaleError):
            validate_sale_items([])

    def test_non_positive_quantity(self):
        with self.assertRaises(SaleError):
            validate_sale_items([{'product_id': 1, 'quantity': 0}])

    def test_negative_price(self):
        with self.assertRaises(SaleError):
            validate_sale_items([{'product_id': 1, 'quantity': 1, 'price': Decimal('-1')}])

    def test_duplicate_product(self):
        with self.assertRaises(SaleError):
            validate_sale_items([
                {'product_id': 1, 'quantity': 1},
                {'product_id': 1, 'quantity': 2},
            ])

    def test_valid_items(self):
        validate_sale_items([{'product_id': 1, 'quantity': 2, 'price': Decimal('3.00')}])


class SaleCreateSerializerTest(TestCase):
    """Test cases for SaleCreateSerializer"""

    def test_valid_data(self):
        serializer = SaleCreateSerializer(data={
            'items': [{'product_id': 1, 'quantity': 2, 'price': '5.00'}],
            'notes': 'Counter sale'
        })
        self.assertTrue(serializer.is_valid())

    def test_empty_items(self):
        serializer = SaleCreateSerializer(data={'items': []})
        self.assertFalse(serializer.is_valid())
        self.assertIn('items', serializer.errors)

    def test_zero_quantity(self):
        serializer = SaleCreateSerializer(data={'items': [{'product_id': 1, 'quantity': 0}]})
        self.assertFalse(serializer.is_valid())

    def test_repeated_product(self):
        serializer = SaleCreateSerializer(data={'items': [
            {'product_id': 1, 'quantity': 1},
            {'product_id': 1, 'quantity': 1},
        ]})
        self.assertFalse(serializer.is_valid())
        self.assertIn('items', serializer.errors)


class StoreTransactionAPITest(SalesFixtureMixin, APITestCase):
    """Test cases for recording and listing a store's sales"""

    def url(self, store):
        return f'/api/stores/{store.pk}/transactions/'

    def test_record_sale(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.post(self.url(self.store), {
            'items': [{'product_id': self.product.pk, 'quantity': 3, 'price': '10.00'}]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['total']), Decimal('30.00'))
        self.assertEqual(response.data['user'], self.seller.pk)
        self.assertEqual(response.data['status'], Sale.Status.COMPLETED)
        self.assertEqual(len(response.data['items']), 1)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 7)

    def test_record_sale_insufficient_stock(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.post(self.url(self.store), {
            'items': [{'product_id': self.product.pk, 'quantity': 11}]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 10)
        self.assertEqual(Sale.objects.count(), 0)

    def test_admin_cannot_record_sale(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url(self.store), {
            'items': [{'product_id': self.product.pk, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unassigned_salesperson_forbidden(self):
        self.client.force_authenticate(user=self.other_seller)
        response = self.client.post(self.url(self.store), {
            'items': [{'product_id': self.product.pk, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_inactive_store(self):
        self.store.status = Store.Status.PENDING_APPROVAL
        self.store.save()
        self.client.force_authenticate(user=self.seller)
        response = self.client.post(self.url(self.store), {
            'items': [{'product_id': self.product.pk, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_store(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.get('/api/stores/99999/transactions/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_store_sales(self):
        record_sale(self.requester(self.seller), self.store, [
            {'product_id': self.product.pk, 'quantity': 1},
        ])
        self.client.force_authenticate(user=self.seller)
        response = self.client.get(self.url(self.store))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_unassigned_store_listing_forbidden(self):
        self.client.force_authenticate(user=self.other_seller)
        response = self.client.get(self.url(self.store))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated(self):
        response = self.client.get(self.url(self.store))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class TransactionAPITest(SalesFixtureMixin, APITestCase):
    """Test cases for sale listing, detail and reports"""

    def setUp(self):
        super().setUp()
        StoreStock.objects.create(store=self.other_store, product=self.product, quantity=5)
        self.sale = record_sale(self.requester(self.seller), self.store, [
            {'product_id': self.product.pk, 'quantity': 2},
        ])
        self.other_sale = record_sale(self.requester(self.other_seller), self.other_store, [
            {'product_id': self.product.pk, 'quantity': 1},
        ])

    def test_admin_sees_all_sales(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_salesperson_sees_own_sales(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.get('/api/transactions/')
        self.assertEqual([s['id'] for s in response.data], [self.sale.pk])

    def test_filter_by_store(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/', {'store_id': self.other_store.pk})
        self.assertEqual([s['id'] for s in response.data], [self.other_sale.pk])

    def test_detail_of_own_sale(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.get(f'/api/transactions/{self.sale.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total']), Decimal('20.00'))

    def test_detail_of_other_sale_forbidden(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.get(f'/api/transactions/{self.other_sale.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_missing(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_summary_is_scoped(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.get('/api/transactions/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_sales_count'], 1)
        self.assertEqual(response.data['total_revenue'], 20.0)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/summary/', {'period': 'week'})
        self.assertEqual(response.data['total_sales_count'], 2)
        self.assertEqual(response.data['total_revenue'], 30.0)

    def test_top_products(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/top-products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product__sku'], 'X1')
        self.assertEqual(response.data[0]['total_quantity'], 3)

    def test_top_products_bad_limit(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/top-products/', {'limit': 'many'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_date_range_filter(self):
        self.client.force_authenticate(user=self.admin)
        today = timezone.now().date()
        response = self.client.get('/api/transactions/', {
            'start_date': (today - timedelta(days=1)).isoformat(),
            'end_date': (today + timedelta(days=1)).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/transactions/', {
            'start_date': (today + timedelta(days=1)).isoformat()
        })
        self.assertEqual(response.data, [])

    def test_malformed_filters_are_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/', {'start_date': 'garbage'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('start_date', response.data)

        response = self.client.get('/api/transactions/', {'store_id': 'abc', 'user_id': 'me'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('store_id', response.data)
        self.assertIn('user_id', response.data)

        response = self.client.get(f'/api/stores/{self.store.pk}/transactions/', {'end_date': '31/12/2024'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reports_reject_malformed_filters(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/summary/', {'store_id': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('store_id', response.data)

        response = self.client.get('/api/transactions/summary/', {'period': 'decade'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/transactions/top-products/', {'store_id': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_store_filter(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/transactions/summary/', {'store_id': self.other_store.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_sales_count'], 1)
