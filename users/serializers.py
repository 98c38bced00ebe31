from django.db import transaction
from rest_framework import serializers
from .models import User


class StoreMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for Store (used in nested representations)"""

    class Meta:
        from stores.models import Store
        model = Store
        fields = ['id', 'name']


def _store_queryset():
    from stores.models import Store
    return Store.objects.all()


def assign_stores(user, stores):
    """Replace the user's store assignments with ``stores``."""
    from stores.models import StoreStaff
    StoreStaff.objects.filter(user=user).exclude(store__in=stores).delete()
    for store in stores:
        StoreStaff.objects.get_or_create(store=store, user=user)


class UniqueEmailMixin:
    """Emails are compared and stored lower-cased"""

    def validate_email(self, value):
        value = value.strip().lower()
        users = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            users = users.exclude(pk=self.instance.pk)
        if users.exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model"""
    stores = StoreMinimalSerializer(source='assigned_stores', many=True, read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'role', 'is_active',
            'stores', 'created_at', 'last_login'
        ]
        read_only_fields = ['id', 'created_at', 'last_login']


class UserCreateSerializer(UniqueEmailMixin, serializers.ModelSerializer):
    """Serializer for creating new users with store assignments (Admin)"""
    password = serializers.CharField(write_only=True, min_length=8)
    store_ids = serializers.PrimaryKeyRelatedField(
        queryset=_store_queryset(),
        many=True,
        required=False,
        write_only=True
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'name', 'role', 'store_ids']
        read_only_fields = ['id']

    def create(self, validated_data):
        stores = validated_data.pop('store_ids', [])
        password = validated_data.pop('password')
        with transaction.atomic():
            user = User(username=validated_data['email'], **validated_data)
            user.set_password(password)
            user.save()
            assign_stores(user, stores)
        return user


class UserUpdateSerializer(UniqueEmailMixin, serializers.ModelSerializer):
    """Serializer for updating user details"""
    store_ids = serializers.PrimaryKeyRelatedField(
        queryset=_store_queryset(),
        many=True,
        required=False,
        write_only=True
    )

    class Meta:
        model = User
        fields = ['email', 'name', 'role', 'is_active', 'store_ids']

    def update(self, instance, validated_data):
        stores = validated_data.pop('store_ids', None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if stores is not None:
                assign_stores(instance, stores)
        return instance


class RegisterSerializer(UniqueEmailMixin, serializers.ModelSerializer):
    """Self-service sign up. New accounts are always SALES."""
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'name', 'role']
        read_only_fields = ['id', 'role']

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(
            username=validated_data['email'],
            role=User.Role.SALES,
            **validated_data
        )
        user.set_password(password)
        user.save()
        return user


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer for password change"""
    old_password = serializers.CharField(required=True)
    new_password = serializers.CharField(required=True, min_length=8)
