"""
Pytest fixtures for the retail network API tests.
Provides common test data and utilities for all test modules.
"""
import pytest
from decimal import Decimal
from datetime import timedelta
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from oauth2_provider.models import Application, AccessToken
from oauthlib.common import generate_token
from django.utils import timezone

User = get_user_model()


# ============== OAuth2 Application Fixture ==============

@pytest.fixture
def oauth_application(db, settings):
    """Create OAuth2 application for testing - must match the name used in login_view"""
    return Application.objects.create(
        name=settings.OAUTH_CLIENT_NAME,
        client_type=Application.CLIENT_PUBLIC,
        authorization_grant_type=Application.GRANT_PASSWORD,
    )


# ============== User Fixtures ==============

def create_user(email, role, password='testpass123', name=None):
    return User.objects.create_user(
        username=email,
        email=email,
        password=password,
        name=name or email.split('@')[0].title(),
        role=role
    )


@pytest.fixture
def admin_user(db, oauth_application):
    """Create an admin user"""
    return create_user('admin@test.com', User.Role.ADMIN, name='Admin User')


@pytest.fixture
def sales_user(db, oauth_application):
    """Create a sales user"""
    return create_user('sales@test.com', User.Role.SALES, name='Sales User')


@pytest.fixture
def other_sales_user(db, oauth_application):
    """Create a second sales user for isolation tests"""
    return create_user('sales2@test.com', User.Role.SALES, name='Other Sales')


# ============== Token Fixtures ==============

def create_access_token(user, application, scope='read write'):
    """Helper function to create access token"""
    expires = timezone.now() + timedelta(hours=1)
    return AccessToken.objects.create(
        user=user,
        application=application,
        token=generate_token(),
        expires=expires,
        scope=scope
    )


@pytest.fixture
def admin_token(admin_user, oauth_application):
    """Create access token for admin"""
    return create_access_token(admin_user, oauth_application)


@pytest.fixture
def sales_token(sales_user, oauth_application):
    """Create access token for sales user"""
    return create_access_token(sales_user, oauth_application)


@pytest.fixture
def other_sales_token(other_sales_user, oauth_application):
    """Create access token for the second sales user"""
    return create_access_token(other_sales_user, oauth_application)


# ============== API Client Fixtures ==============

def bearer_client(token):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.token}')
    return client


@pytest.fixture
def api_client():
    """Create unauthenticated API test client"""
    return APIClient()


@pytest.fixture
def admin_client(admin_token):
    """API client authenticated as admin"""
    return bearer_client(admin_token)


@pytest.fixture
def sales_client(sales_token):
    """API client authenticated as sales user"""
    return bearer_client(sales_token)


@pytest.fixture
def other_sales_client(other_sales_token):
    """API client authenticated as the second sales user"""
    return bearer_client(other_sales_token)


# ============== Store Fixtures ==============

def create_store(name, status='ACTIVE', **kwargs):
    from stores.models import Store
    data = {
        'name': name,
        'owner_name': 'Store Owner',
        'owner_phone': '+6281234567890',
        'address': 'Jl. Sudirman 1',
        'city': 'Jakarta Selatan',
        'province': 'DKI Jakarta',
        'type': Store.Type.RETAIL,
        'latitude': -6.2,
        'longitude': 106.8,
        'status': status,
    }
    data.update(kwargs)
    return Store.objects.create(**data)


@pytest.fixture
def store(db, sales_user):
    """Active store with sales_user assigned as staff"""
    from stores.models import StoreStaff
    store = create_store('Gandaria City')
    StoreStaff.objects.create(store=store, user=sales_user)
    return store


@pytest.fixture
def other_store(db, other_sales_user):
    """Active store staffed only by other_sales_user"""
    from stores.models import StoreStaff
    store = create_store('Pacific Place')
    StoreStaff.objects.create(store=store, user=other_sales_user)
    return store


@pytest.fixture
def pending_store(db, sales_user):
    """Store awaiting approval, staffed by sales_user"""
    from stores.models import StoreStaff
    store = create_store('Central Park', status='PENDING_APPROVAL')
    StoreStaff.objects.create(store=store, user=sales_user)
    return store


# ============== Inventory Fixtures ==============

@pytest.fixture
def product(db, admin_user):
    """Create a test product"""
    from inventory.models import Product
    return Product.objects.create(
        sku='X1',
        name='Test Product',
        description='Test product description',
        price=Decimal('10.00'),
        min_stock_level=5,
        category='General',
        created_by=admin_user
    )


@pytest.fixture
def product2(db, admin_user):
    """Create a second test product"""
    from inventory.models import Product
    return Product.objects.create(
        sku='X2-ITEM',
        name='Second Product',
        price=Decimal('25.50'),
        min_stock_level=10,
        category='General',
        created_by=admin_user
    )


@pytest.fixture
def store_stock(db, store, product):
    """Seed 20 units of product in store"""
    from inventory.models import StoreStock
    return StoreStock.objects.create(store=store, product=product, quantity=20)


@pytest.fixture
def store_stock2(db, store, product2):
    """Seed 8 units of product2 in store"""
    from inventory.models import StoreStock
    return StoreStock.objects.create(store=store, product=product2, quantity=8)


@pytest.fixture
def other_store_stock(db, other_store, product2):
    """Seed product2 in the store sales_user is not assigned to"""
    from inventory.models import StoreStock
    return StoreStock.objects.create(store=other_store, product=product2, quantity=30)
