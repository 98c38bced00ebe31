from rest_framework import serializers
from .models import Store, StoreStaff


class StoreStatsMixin(serializers.Serializer):
    """Per-store figures annotated onto the queryset by StoreViewSet"""
    stats = serializers.SerializerMethodField()

    def get_stats(self, obj):
        return {
            'total_products': getattr(obj, 'total_products', 0),
            'total_sales': getattr(obj, 'total_sales', 0),
            'last_sale': getattr(obj, 'last_sale', None),
            'low_stock': getattr(obj, 'low_stock', 0),
        }


class StoreSerializer(StoreStatsMixin, serializers.ModelSerializer):
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Store
        fields = [
            'id', 'name', 'owner_name', 'owner_phone', 'owner_email',
            'address', 'city', 'province', 'type', 'type_display', 'notes',
            'latitude', 'longitude', 'photo_url', 'status', 'status_display',
            'approved_at', 'approved_by', 'stats', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class StoreStaffSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='user.id', read_only=True)
    name = serializers.CharField(source='user.name', read_only=True)
    email = serializers.CharField(source='user.email', read_only=True)
    role = serializers.CharField(source='user.role', read_only=True)

    class Meta:
        model = StoreStaff
        fields = ['id', 'name', 'email', 'role', 'created_at']


class StoreDetailSerializer(StoreSerializer):
    staff = StoreStaffSerializer(source='staff_assignments', many=True, read_only=True)
    recent_sales = serializers.SerializerMethodField()

    class Meta(StoreSerializer.Meta):
        fields = StoreSerializer.Meta.fields + ['staff', 'recent_sales']
        read_only_fields = fields

    def get_recent_sales(self, obj):
        from sales.serializers import SaleSerializer
        sales = self.context.get('recent_sales')
        if sales is None:
            sales = obj.sales.select_related('user').prefetch_related('items__product')[:5]
        return SaleSerializer(sales, many=True).data


class StoreCreateSerializer(serializers.ModelSerializer):
    """Store registration. New stores always wait for admin approval."""

    class Meta:
        model = Store
        fields = [
            'name', 'owner_name', 'owner_phone', 'owner_email',
            'address', 'city', 'province', 'type', 'notes',
            'latitude', 'longitude', 'photo_url'
        ]
        extra_kwargs = {
            'type': {'required': True},
        }


class StoreUpdateSerializer(serializers.ModelSerializer):
    """Admin update, including approval through ``status``"""

    class Meta:
        model = Store
        fields = StoreCreateSerializer.Meta.fields + ['status']
