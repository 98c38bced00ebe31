"""
Tests for the Stores module.
Tests for: store registration and approval, scoped listing, store inventory and image uploads.
"""
import io

import pytest
from decimal import Decimal
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework import status

from sales.services import record_sale
from stores.models import Store, StoreStaff
from users.access import Requester


def store_payload(**overrides):
    data = {
        'name': 'Kota Kasablanka',
        'owner_name': 'Budi Santoso',
        'owner_phone': '+6281298765432',
        'owner_email': 'budi@example.com',
        'address': 'Jl. Casablanca Raya 88',
        'city': 'Jakarta Selatan',
        'province': 'DKI Jakarta',
        'type': 'MINIMARKET',
        'latitude': -6.224,
        'longitude': 106.843,
    }
    data.update(overrides)
    return data


def png_bytes(size=(4, 4)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color=(200, 30, 30)).save(buffer, format='PNG')
    return buffer.getvalue()


# ============== Model Tests ==============

@pytest.mark.django_db
class TestStoreModel:

    def test_defaults_to_pending(self):
        store = Store.objects.create(**store_payload())
        assert store.status == Store.Status.PENDING_APPROVAL
        assert not store.is_active

    def test_staff_assignment_is_unique(self, store, sales_user):
        from django.db import IntegrityError, transaction
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                StoreStaff.objects.create(store=store, user=sales_user)


# ============== Listing and Detail Tests ==============

@pytest.mark.django_db
class TestStoreListing:

    def test_admin_sees_every_store(self, admin_client, store, other_store, pending_store):
        response = admin_client.get('/api/stores/')
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 3

    def test_sales_sees_assigned_stores(self, sales_client, store, other_store, pending_store):
        response = sales_client.get('/api/stores/')
        names = sorted(s['name'] for s in response.data)
        assert names == ['Central Park', 'Gandaria City']

    def test_status_filter(self, admin_client, store, pending_store):
        response = admin_client.get('/api/stores/', {'status': 'pending_approval'})
        assert [s['name'] for s in response.data] == ['Central Park']

    def test_stats(self, admin_client, store, store_stock, store_stock2):
        response = admin_client.get('/api/stores/', {'status': 'ACTIVE'})
        stats = response.data[0]['stats']
        assert stats['total_products'] == 2
        assert stats['low_stock'] == 1
        assert stats['total_sales'] == 0
        assert stats['last_sale'] is None

    def test_detail_of_assigned_store(self, sales_client, sales_user, store, product, store_stock):
        record_sale(Requester.from_user(sales_user), store, [{'product_id': product.pk, 'quantity': 1}])
        response = sales_client.get(f'/api/stores/{store.pk}/')
        assert response.status_code == status.HTTP_200_OK
        assert [s['email'] for s in response.data['staff']] == ['sales@test.com']
        assert len(response.data['recent_sales']) == 1
        assert response.data['stats']['total_sales'] == 1

    def test_detail_of_unassigned_store(self, sales_client, other_store):
        response = sales_client.get(f'/api/stores/{other_store.pk}/')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_detail_missing(self, sales_client):
        response = sales_client.get('/api/stores/99999/')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unauthenticated(self, api_client):
        response = api_client.get('/api/stores/')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ============== Registration and Approval Tests ==============

@pytest.mark.django_db
class TestStoreRegistration:

    def test_sales_registers_pending_store(self, sales_client, sales_user):
        response = sales_client.post('/api/stores/', store_payload(status='ACTIVE'), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == Store.Status.PENDING_APPROVAL
        store = Store.objects.get(pk=response.data['id'])
        assert StoreStaff.objects.filter(store=store, user=sales_user).exists()

    def test_registered_store_visible_to_creator(self, sales_client):
        sales_client.post('/api/stores/', store_payload(), format='json')
        response = sales_client.get('/api/stores/')
        assert [s['name'] for s in response.data] == ['Kota Kasablanka']

    @pytest.mark.parametrize('field,value', [
        ('latitude', 91),
        ('longitude', -181),
        ('type', 'KIOSK'),
        ('name', ''),
    ])
    def test_validation(self, sales_client, field, value):
        response = sales_client.post('/api/stores/', store_payload(**{field: value}), format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert field in response.data

    def test_admin_approves_store(self, admin_client, admin_user, pending_store):
        response = admin_client.patch(
            f'/api/stores/{pending_store.pk}/', {'status': 'ACTIVE'}, format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == Store.Status.ACTIVE

        pending_store.refresh_from_db()
        assert pending_store.approved_at is not None
        assert pending_store.approved_by == admin_user

    def test_deactivation_does_not_stamp_approval(self, admin_client, store):
        response = admin_client.patch(f'/api/stores/{store.pk}/', {'status': 'INACTIVE'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        store.refresh_from_db()
        assert store.approved_by is None

    def test_sales_cannot_approve(self, sales_client, pending_store):
        response = sales_client.patch(
            f'/api/stores/{pending_store.pk}/', {'status': 'ACTIVE'}, format='json'
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        pending_store.refresh_from_db()
        assert pending_store.status == Store.Status.PENDING_APPROVAL

    def test_sales_cannot_edit_store(self, sales_client, store):
        response = sales_client.patch(f'/api/stores/{store.pk}/', {'name': 'Renamed'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_deletes_unused_store(self, admin_client, pending_store):
        response = admin_client.delete(f'/api/stores/{pending_store.pk}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Store.objects.filter(pk=pending_store.pk).exists()

    def test_store_with_sales_cannot_be_deleted(self, admin_client, sales_user, store, product, store_stock):
        record_sale(Requester.from_user(sales_user), store, [{'product_id': product.pk, 'quantity': 1}])
        response = admin_client.delete(f'/api/stores/{store.pk}/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Store.objects.filter(pk=store.pk).exists()


# ============== Store Inventory Tests ==============

@pytest.mark.django_db
class TestStoreInventory:

    def test_inventory(self, sales_client, sales_user, store, product, product2, store_stock, store_stock2):
        record_sale(Requester.from_user(sales_user), store, [
            {'product_id': product.pk, 'quantity': 2, 'price': Decimal('9.00')},
        ])
        response = sales_client.get(f'/api/stores/{store.pk}/inventory/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['store'] == store.pk
        rows = {row['product']['sku']: row for row in response.data['inventory']}
        assert rows['X1']['current_stock'] == 18
        assert rows['X1']['is_low_stock'] is False
        assert rows['X1']['sales'][0]['quantity'] == 2
        assert rows['X1']['sales'][0]['price'] == '9.00'
        assert rows['X2-ITEM']['stock_status'] == 'LOW_STOCK'
        assert rows['X2-ITEM']['sales'] == []

    def test_inventory_of_unassigned_store(self, sales_client, other_store, other_store_stock):
        response = sales_client.get(f'/api/stores/{other_store.pk}/inventory/')
        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============== Upload Tests ==============

@pytest.mark.django_db
class TestUpload:

    @pytest.fixture(autouse=True)
    def media_root(self, settings, tmp_path):
        settings.MEDIA_ROOT = str(tmp_path)
        return tmp_path

    def test_upload_image(self, sales_client, media_root):
        upload = SimpleUploadedFile('storefront.PNG', png_bytes(), content_type='image/png')
        response = sales_client.post('/api/upload/', {'file': upload}, format='multipart')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['url'].endswith('.png')
        assert '/uploads/' in response.data['url']
        assert len(list((media_root / 'uploads').iterdir())) == 1

    def test_missing_file(self, sales_client):
        response = sales_client.post('/api/upload/', {}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_non_image_type(self, sales_client):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        response = sales_client.post('/api/upload/', {'file': upload}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_corrupt_image(self, sales_client):
        upload = SimpleUploadedFile('broken.png', b'not really a png', content_type='image/png')
        response = sales_client.post('/api/upload/', {'file': upload}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_too_large(self, sales_client, settings):
        settings.UPLOAD_MAX_BYTES = 16
        upload = SimpleUploadedFile('big.png', png_bytes(), content_type='image/png')
        response = sales_client.post('/api/upload/', {'file': upload}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'File too large'

    def test_unauthenticated(self, api_client):
        upload = SimpleUploadedFile('storefront.png', png_bytes(), content_type='image/png')
        response = api_client.post('/api/upload/', {'file': upload}, format='multipart')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
