"""
Django management command to load demo data.
Creates an admin and a sales user, a product catalog and three active stores
staffed by the sales user and stocked through the inventory ledger.
"""
import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone


PRODUCTS = [
    ('MBPR-16-M2', 'MacBook Pro 16"', 'Apple MacBook Pro 16" with M2 Pro chip', '2499.99', 10, 'Laptops'),
    ('IPH-15PRO-256', 'iPhone 15 Pro', 'iPhone 15 Pro 256GB Titanium', '1199.99', 20, 'Smartphones'),
    ('IPAD-AIR-5', 'iPad Air', 'iPad Air 5th Generation 256GB', '749.99', 15, 'Tablets'),
    ('APP-2-WHT', 'AirPods Pro', 'AirPods Pro 2nd Generation', '249.99', 30, 'Audio'),
    ('AWU-2-TIT', 'Apple Watch Ultra', 'Apple Watch Ultra 2nd Generation Titanium', '799.99', 8, 'Wearables'),
    ('AMK-3-BLK', 'Magic Keyboard', 'Apple Magic Keyboard with Touch ID', '149.99', 25, 'Accessories'),
]

STORES = [
    {
        'name': 'Gandaria City',
        'address': 'Gandaria City Mall, Jl. Sultan Iskandar Muda',
        'city': 'Jakarta Selatan',
        'province': 'DKI Jakarta',
        'latitude': -6.244,
        'longitude': 106.783,
        'owner_name': 'John Doe',
        'owner_phone': '+6281234567890',
        'owner_email': 'john.doe@example.com',
    },
    {
        'name': 'Pacific Place',
        'address': 'Pacific Place Mall, Jl. Jend. Sudirman',
        'city': 'Jakarta Selatan',
        'province': 'DKI Jakarta',
        'latitude': -6.224,
        'longitude': 106.809,
        'owner_name': 'Jane Smith',
        'owner_phone': '+6281234567891',
        'owner_email': 'jane.smith@example.com',
    },
    {
        'name': 'Central Park',
        'address': 'Central Park Mall, Jl. Letjen S. Parman',
        'city': 'Jakarta Barat',
        'province': 'DKI Jakarta',
        'latitude': -6.177,
        'longitude': 106.790,
        'owner_name': 'Bob Wilson',
        'owner_phone': '+6281234567892',
        'owner_email': 'bob.wilson@example.com',
    },
]


class Command(BaseCommand):
    help = 'Load demo data (users, products, stores, staff assignments and stock)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-password',
            type=str,
            default='admin123',
            help='Password for admin@example.com (default: admin123)',
        )
        parser.add_argument(
            '--sales-password',
            type=str,
            default='sales123',
            help='Password for sales@example.com (default: sales123)',
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for stock quantities',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        from users.models import User
        from stores.models import Store, StoreStaff
        from inventory.ledger import apply_delta, available_quantity
        from inventory.models import Product
        from stock.models import StockMovement

        rng = random.Random(options['seed'])

        self.stdout.write(self.style.NOTICE('Loading demo data...'))

        # =================================================================
        # Users
        # =================================================================
        admin = self._get_or_create_user(
            User, 'admin@example.com', 'Admin User', User.Role.ADMIN, options['admin_password']
        )
        sales = self._get_or_create_user(
            User, 'sales@example.com', 'Sales User', User.Role.SALES, options['sales_password']
        )

        # =================================================================
        # Products
        # =================================================================
        products = []
        for sku, name, description, price, min_stock_level, category in PRODUCTS:
            product, created = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    'name': name,
                    'description': description,
                    'price': Decimal(price),
                    'min_stock_level': min_stock_level,
                    'category': category,
                    'created_by': admin,
                }
            )
            products.append(product)
            if created:
                self.stdout.write(f'  Created product: {product.sku}')

        # =================================================================
        # Stores, staff and stock
        # =================================================================
        for data in STORES:
            store, created = Store.objects.get_or_create(
                name=data['name'],
                defaults={
                    **data,
                    'type': Store.Type.RETAIL,
                    'status': Store.Status.ACTIVE,
                    'approved_at': timezone.now(),
                    'approved_by': admin,
                }
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created store: {store.name}'))
            StoreStaff.objects.get_or_create(store=store, user=sales)

            for product in products:
                if available_quantity(store, product) > 0:
                    continue
                apply_delta(
                    store, product, rng.randint(1, 50),
                    reason=StockMovement.Reason.ADJUSTMENT,
                    performed_by=admin,
                    notes='Demo data'
                )

        self.stdout.write(self.style.SUCCESS(
            f'Demo data ready: {len(products)} products, {len(STORES)} stores'
        ))

    def _get_or_create_user(self, User, email, name, role, password):
        user, created = User.objects.get_or_create(
            email=email,
            defaults={'username': email, 'name': name, 'role': role}
        )
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f'Created user: {email} / {password}'))
        else:
            self.stdout.write(f'User already exists: {email}')
        return user
