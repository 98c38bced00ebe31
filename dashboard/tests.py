"""
Unit Tests for Dashboard Module
Tests for: dashboard_stats
"""
from decimal import Decimal
from rest_framework.test import APITestCase
from rest_framework import status

from deliveries.models import Delivery
from inventory.models import Product, StoreStock
from sales.services import record_sale
from stores.models import Store, StoreStaff
from users.access import Requester
from users.models import User


class DashboardStatsAPITest(APITestCase):
    """Test cases for dashboard stats endpoint"""

    url = '/api/dashboard/stats/'

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

        store_data = {
            'owner_name': 'Owner',
            'owner_phone': '+6281234567890',
            'address': 'Jl. Gatot Subroto 5',
            'city': 'Jakarta Selatan',
            'province': 'DKI Jakarta',
            'latitude': -6.22,
            'longitude': 106.81,
        }
        self.store = Store.objects.create(name='Senayan', status=Store.Status.ACTIVE, **store_data)
        self.other_store = Store.objects.create(name='Kuningan', status=Store.Status.ACTIVE, **store_data)
        Store.objects.create(name='Tebet', status=Store.Status.PENDING_APPROVAL, **store_data)
        StoreStaff.objects.create(store=self.store, user=self.seller)
        StoreStaff.objects.create(store=self.other_store, user=self.other_seller)

        self.product = Product.objects.create(
            sku='DASH-1', name='Air Mineral', price=Decimal('5.00'), min_stock_level=10
        )
        self.other_product = Product.objects.create(
            sku='DASH-2', name='Roti Tawar', price=Decimal('15.00'), min_stock_level=2
        )
        StoreStock.objects.create(store=self.store, product=self.product, quantity=14)
        StoreStock.objects.create(store=self.other_store, product=self.other_product, quantity=10)

        record_sale(Requester.from_user(self.seller), self.store, [
            {'product_id': self.product.pk, 'quantity': 4},
        ])
        record_sale(Requester.from_user(self.other_seller), self.other_store, [
            {'product_id': self.other_product.pk, 'quantity': 10},
        ])

        Delivery.objects.create(salesman=self.seller, store=self.store)

    def test_dashboard_stats_structure(self):
        """Test the response carries every section"""
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in ['totals', 'today_sales', 'top_selling_products',
                    'recent_sales', 'weekly_sales', 'store_summary']:
            self.assertIn(key, response.data)
        self.assertEqual(len(response.data['weekly_sales']), 7)

    def test_admin_totals(self):
        self.client.force_authenticate(user=self.admin)
        totals = self.client.get(self.url).data['totals']

        self.assertEqual(totals['revenue'], 170.0)
        self.assertEqual(totals['sales'], 2)
        self.assertEqual(totals['products'], 2)
        self.assertEqual(totals['stores'], 3)
        self.assertEqual(totals['users'], 3)
        # DASH-1 at 10 <= 10, DASH-2 at 0
        self.assertEqual(totals['low_stock'], 2)
        self.assertEqual(totals['out_of_stock'], 1)
        self.assertEqual(totals['pending_deliveries'], 1)

    def test_admin_store_summary(self):
        self.client.force_authenticate(user=self.admin)
        summary = self.client.get(self.url).data['store_summary']
        self.assertEqual(summary['active'], 2)
        self.assertEqual(summary['pending_approval'], 1)
        self.assertEqual(summary['inactive'], 0)

    def test_sales_user_sees_own_figures(self):
        self.client.force_authenticate(user=self.seller)
        data = self.client.get(self.url).data
        totals = data['totals']

        self.assertIsNone(totals['users'])
        self.assertEqual(totals['revenue'], 20.0)
        self.assertEqual(totals['sales'], 1)
        self.assertEqual(totals['stores'], 1)
        self.assertEqual(totals['products'], 1)
        self.assertEqual(totals['low_stock'], 1)
        self.assertEqual(totals['out_of_stock'], 0)
        self.assertEqual(totals['pending_deliveries'], 1)
        self.assertEqual([s['user'] for s in data['recent_sales']], ['seller@test.com'])

    def test_today_sales(self):
        self.client.force_authenticate(user=self.admin)
        today = self.client.get(self.url).data['today_sales']
        self.assertEqual(today['total'], 170.0)
        self.assertEqual(today['count'], 2)
        self.assertEqual(today['change_percent'], 0)

    def test_top_selling_products_by_revenue(self):
        self.client.force_authenticate(user=self.admin)
        top = self.client.get(self.url).data['top_selling_products']
        self.assertEqual([p['sku'] for p in top], ['DASH-2', 'DASH-1'])
        self.assertEqual(top[0]['quantity_sold'], 10)
        self.assertEqual(top[0]['revenue'], 150.0)

    def test_store_filter(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url, {'store_id': self.other_store.pk})
        self.assertEqual(response.data['totals']['sales'], 1)
        self.assertEqual(response.data['totals']['pending_deliveries'], 0)

    def test_malformed_store_filter(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(self.url, {'store_id': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('store_id', response.data)

    def test_dashboard_requires_authentication(self):
        """Test dashboard requires authentication"""
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
