"""
Tests for the Users module.
Tests for: User model, access filter, permissions, serializers, authentication
and user management.
"""
import pytest
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from users.access import (
    Action, Requester, Resource, can_access, check_access, is_assigned, scope_queryset
)
from users.models import User
from users.permissions import IsAdmin, IsSales, IsAdminOrReadOnly
from users.serializers import (
    UserCreateSerializer, UserUpdateSerializer, RegisterSerializer, ChangePasswordSerializer
)


class MockRequest:
    def __init__(self, user, method='GET'):
        self.user = user
        self.method = method


# ============== User Model Tests ==============

@pytest.mark.django_db
class TestUserModel:
    """Test cases for User model"""

    def test_default_role_is_sales(self):
        user = User.objects.create_user(username='new@test.com', email='new@test.com', password='pass12345')
        assert user.role == User.Role.SALES
        assert user.is_sales
        assert not user.is_admin

    def test_username_defaults_to_email(self):
        user = User(email='plain@test.com', role=User.Role.ADMIN)
        user.set_password('pass12345')
        user.save()
        assert user.username == 'plain@test.com'
        assert user.is_admin

    def test_user_str_representation(self, sales_user):
        assert 'sales@test.com' in str(sales_user)
        assert 'Sales' in str(sales_user)


# ============== Access Filter Tests ==============

@pytest.mark.django_db
class TestAccessFilter:
    """Role-scoped visibility and object decisions"""

    def test_requester_from_anonymous_request_raises(self):
        from django.contrib.auth.models import AnonymousUser
        with pytest.raises(NotAuthenticated):
            Requester.from_request(MockRequest(AnonymousUser()))

    def test_admin_sees_every_store(self, admin_user, store, other_store):
        from stores.models import Store
        requester = Requester.from_user(admin_user)
        visible = scope_queryset(requester, Resource.STORE, Store.objects.all())
        assert set(visible) == {store, other_store}

    def test_sales_sees_only_assigned_stores(self, sales_user, store, other_store):
        from stores.models import Store
        requester = Requester.from_user(sales_user)
        visible = scope_queryset(requester, Resource.STORE, Store.objects.all())
        assert list(visible) == [store]

    def test_sales_sees_products_stocked_in_assigned_stores(
        self, sales_user, product, product2, store_stock, other_store_stock
    ):
        from inventory.models import Product
        requester = Requester.from_user(sales_user)
        visible = scope_queryset(requester, Resource.PRODUCT, Product.objects.all())
        assert list(visible) == [product]

    def test_sales_sees_only_own_sales_in_assigned_stores(self, sales_user, other_sales_user, store):
        from sales.models import Sale
        from stores.models import StoreStaff
        StoreStaff.objects.create(store=store, user=other_sales_user)
        own = Sale.objects.create(store=store, user=sales_user, total=0)
        Sale.objects.create(store=store, user=other_sales_user, total=0)

        requester = Requester.from_user(sales_user)
        visible = scope_queryset(requester, Resource.SALE, Sale.objects.all())
        assert list(visible) == [own]

    def test_is_assigned(self, sales_user, store, other_store):
        requester = Requester.from_user(sales_user)
        assert is_assigned(requester, store)
        assert is_assigned(requester, store.pk)
        assert not is_assigned(requester, other_store)

    def test_admin_cannot_record_sale(self, admin_user, store):
        requester = Requester.from_user(admin_user)
        with pytest.raises(PermissionDenied):
            check_access(requester, Resource.SALE, Action.CREATE, store)

    def test_sales_cannot_record_sale_in_unassigned_store(self, sales_user, other_store):
        requester = Requester.from_user(sales_user)
        assert not can_access(requester, Resource.SALE, Action.CREATE, other_store)

    def test_sales_can_record_sale_in_assigned_store(self, sales_user, store):
        requester = Requester.from_user(sales_user)
        assert can_access(requester, Resource.SALE, Action.CREATE, store)

    def test_only_owner_updates_delivery(self, sales_user, other_sales_user, admin_user, store):
        from deliveries.models import Delivery
        delivery = Delivery.objects.create(salesman=sales_user, store=store)

        assert can_access(Requester.from_user(sales_user), Resource.DELIVERY, Action.UPDATE, delivery)
        assert not can_access(Requester.from_user(other_sales_user), Resource.DELIVERY, Action.UPDATE, delivery)
        assert not can_access(Requester.from_user(admin_user), Resource.DELIVERY, Action.UPDATE, delivery)
        assert can_access(Requester.from_user(admin_user), Resource.DELIVERY, Action.READ, delivery)

    def test_only_admin_modifies_stores_and_products(self, admin_user, sales_user, store, product):
        admin = Requester.from_user(admin_user)
        sales = Requester.from_user(sales_user)
        assert can_access(admin, Resource.STORE, Action.APPROVE, store)
        assert not can_access(sales, Resource.STORE, Action.APPROVE, store)
        assert not can_access(sales, Resource.STORE, Action.UPDATE, store)
        assert not can_access(sales, Resource.PRODUCT, Action.UPDATE, product)
        assert can_access(sales, Resource.STORE, Action.CREATE)


# ============== Permission Tests ==============

@pytest.mark.django_db
class TestPermissions:
    """Test cases for custom permissions"""

    def test_is_admin_permission(self, admin_user, sales_user):
        permission = IsAdmin()
        assert permission.has_permission(MockRequest(admin_user), None)
        assert not permission.has_permission(MockRequest(sales_user), None)

    def test_is_sales_permission(self, admin_user, sales_user):
        permission = IsSales()
        assert permission.has_permission(MockRequest(sales_user), None)
        assert not permission.has_permission(MockRequest(admin_user), None)

    def test_is_admin_or_read_only(self, admin_user, sales_user):
        permission = IsAdminOrReadOnly()
        assert permission.has_permission(MockRequest(sales_user, 'GET'), None)
        assert not permission.has_permission(MockRequest(sales_user, 'POST'), None)
        assert permission.has_permission(MockRequest(admin_user, 'DELETE'), None)


# ============== Serializer Tests ==============

@pytest.mark.django_db
class TestUserSerializers:
    """Test cases for User serializers"""

    def test_short_password_fails(self):
        serializer = UserCreateSerializer(data={
            'email': 'short@test.com',
            'password': 'short',
            'role': 'SALES'
        })
        assert not serializer.is_valid()
        assert 'password' in serializer.errors

    def test_create_assigns_stores(self, store, other_store):
        serializer = UserCreateSerializer(data={
            'email': 'assigned@test.com',
            'password': 'securepass123',
            'name': 'Assigned',
            'role': 'SALES',
            'store_ids': [store.pk, other_store.pk]
        })
        assert serializer.is_valid(), serializer.errors
        user = serializer.save()
        assert set(user.assigned_stores.all()) == {store, other_store}
        assert user.check_password('securepass123')

    def test_register_ignores_requested_role(self):
        serializer = RegisterSerializer(data={
            'email': 'self@test.com',
            'password': 'securepass123',
            'name': 'Self',
            'role': 'ADMIN'
        })
        assert serializer.is_valid(), serializer.errors
        user = serializer.save()
        assert user.role == User.Role.SALES

    def test_update_rejects_email_of_another_user_in_other_case(self, sales_user, other_sales_user):
        serializer = UserUpdateSerializer(
            other_sales_user, data={'email': 'SALES@test.com'}, partial=True
        )
        assert not serializer.is_valid()
        assert 'email' in serializer.errors

    def test_update_keeps_own_email_in_other_case(self, sales_user):
        serializer = UserUpdateSerializer(sales_user, data={'email': 'Sales@Test.com'}, partial=True)
        assert serializer.is_valid(), serializer.errors
        user = serializer.save()
        assert user.email == 'sales@test.com'
        assert user.username == 'sales@test.com'

    def test_short_new_password_fails(self):
        serializer = ChangePasswordSerializer(data={
            'old_password': 'oldpassword123',
            'new_password': 'short'
        })
        assert not serializer.is_valid()
        assert 'new_password' in serializer.errors


# ============== Authentication API Tests ==============

@pytest.mark.django_db
class TestAuthenticationAPI:
    """Test authentication endpoints"""

    def test_login_success(self, api_client, admin_user):
        response = api_client.post('/api/auth/login/', {
            'email': 'admin@test.com',
            'password': 'testpass123'
        })

        assert response.status_code == status.HTTP_200_OK
        assert 'access_token' in response.data
        assert 'refresh_token' in response.data
        assert response.data['token_type'] == 'Bearer'
        assert response.data['user']['role'] == 'ADMIN'

    def test_login_token_authenticates(self, api_client, sales_user):
        response = api_client.post('/api/auth/login/', {
            'email': 'sales@test.com',
            'password': 'testpass123'
        })
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access_token']}")

        response = api_client.get('/api/auth/me/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'sales@test.com'

    def test_login_invalid_credentials(self, api_client, admin_user):
        response = api_client.post('/api/auth/login/', {
            'email': 'admin@test.com',
            'password': 'wrongpassword'
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_unknown_email(self, api_client, oauth_application):
        response = api_client.post('/api/auth/login/', {
            'email': 'nobody@test.com',
            'password': 'whatever123'
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_missing_credentials(self, api_client):
        response = api_client.post('/api/auth/login/', {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_me_requires_authentication(self, api_client):
        response = api_client.get('/api/auth/me/')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_lists_assigned_stores(self, sales_client, store):
        response = sales_client.get('/api/auth/me/')
        assert response.status_code == status.HTTP_200_OK
        assert [s['id'] for s in response.data['stores']] == [store.pk]

    def test_logout_revokes_token(self, sales_client, sales_token):
        from oauth2_provider.models import AccessToken
        response = sales_client.post('/api/auth/logout/')
        assert response.status_code == status.HTTP_200_OK
        assert not AccessToken.objects.filter(pk=sales_token.pk).exists()

    def test_change_password(self, sales_client, sales_user):
        response = sales_client.post('/api/auth/change-password/', {
            'old_password': 'testpass123',
            'new_password': 'brandnew123'
        })
        assert response.status_code == status.HTTP_200_OK
        sales_user.refresh_from_db()
        assert sales_user.check_password('brandnew123')

    def test_change_password_wrong_old(self, sales_client):
        response = sales_client.post('/api/auth/change-password/', {
            'old_password': 'incorrect',
            'new_password': 'brandnew123'
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestRegisterAPI:

    def test_register_creates_sales_user(self, api_client):
        response = api_client.post('/api/register/', {
            'email': 'newcomer@test.com',
            'password': 'securepass123',
            'name': 'Newcomer',
            'role': 'ADMIN'
        })
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['role'] == 'SALES'
        assert User.objects.get(email='newcomer@test.com').role == User.Role.SALES

    def test_register_duplicate_email(self, api_client, sales_user):
        response = api_client.post('/api/register/', {
            'email': 'sales@test.com',
            'password': 'securepass123',
            'name': 'Dup'
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data

    def test_register_email_differing_only_by_case(self, api_client):
        response = api_client.post('/api/register/', {
            'email': 'Bob@Example.com',
            'password': 'securepass123',
            'name': 'Bob'
        })
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['email'] == 'bob@example.com'

        response = api_client.post('/api/register/', {
            'email': 'bob@example.com',
            'password': 'otherpass123',
            'name': 'Other Bob'
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data
        assert User.objects.filter(email__iexact='bob@example.com').count() == 1

    def test_login_after_mixed_case_registration(self, api_client):
        api_client.post('/api/register/', {
            'email': 'Mixed.Case@Example.com',
            'password': 'securepass123',
            'name': 'Mixed'
        })
        for email in ['Mixed.Case@Example.com', 'mixed.case@example.com', 'MIXED.CASE@EXAMPLE.COM']:
            response = api_client.post('/api/auth/login/', {
                'email': email,
                'password': 'securepass123'
            })
            assert response.status_code == status.HTTP_200_OK, email

    def test_register_overlong_email(self, api_client):
        # 155 characters, longer than a username may be
        email = 'a' * 60 + '@' + 'b' * 60 + '.' + 'c' * 29 + '.com'
        response = api_client.post('/api/register/', {
            'email': email,
            'password': 'securepass123',
            'name': 'Long'
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'email' in response.data
        assert not User.objects.filter(email=email).exists()


# ============== User Management API Tests ==============

@pytest.mark.django_db
class TestUserManagementAPI:

    def test_admin_lists_users(self, admin_client, sales_user):
        response = admin_client.get('/api/users/')
        assert response.status_code == status.HTTP_200_OK
        emails = {u['email'] for u in response.data}
        assert {'admin@test.com', 'sales@test.com'} <= emails

    def test_filter_users_by_role(self, admin_client, sales_user):
        response = admin_client.get('/api/users/', {'role': 'sales'})
        assert response.status_code == status.HTTP_200_OK
        assert {u['role'] for u in response.data} == {'SALES'}

    def test_filter_users_by_store(self, admin_client, sales_user, other_sales_user, store):
        response = admin_client.get('/api/users/', {'store_id': store.pk})
        assert [u['email'] for u in response.data] == ['sales@test.com']

        response = admin_client.get('/api/users/', {'store_id': 'abc'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'store_id' in response.data

    def test_sales_cannot_list_users(self, sales_client):
        response = sales_client.get('/api/users/')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_creates_user_with_stores(self, admin_client, store):
        response = admin_client.post('/api/users/', {
            'email': 'hire@test.com',
            'password': 'securepass123',
            'name': 'New Hire',
            'role': 'SALES',
            'store_ids': [store.pk]
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert [s['id'] for s in response.data['stores']] == [store.pk]

    def test_admin_reassigns_stores(self, admin_client, sales_user, store, other_store):
        response = admin_client.patch(
            f'/api/users/{sales_user.pk}/',
            {'store_ids': [other_store.pk]},
            format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert list(sales_user.assigned_stores.all()) == [other_store]

    def test_admin_cannot_delete_self(self, admin_client, admin_user):
        response = admin_client.delete(f'/api/users/{admin_user.pk}/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_user_with_sales_cannot_be_deleted(self, admin_client, sales_user, store):
        from sales.models import Sale
        Sale.objects.create(store=store, user=sales_user, total=0)
        response = admin_client.delete(f'/api/users/{sales_user.pk}/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert User.objects.filter(pk=sales_user.pk).exists()
