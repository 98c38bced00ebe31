from rest_framework import serializers
from .models import Delivery, DeliveryItem


class DeliveryItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        model = DeliveryItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'quantity']
        read_only_fields = fields


class DeliverySerializer(serializers.ModelSerializer):
    salesman_name = serializers.CharField(source='salesman.name', read_only=True)
    salesman_email = serializers.CharField(source='salesman.email', read_only=True)
    store_name = serializers.CharField(source='store.name', read_only=True)
    store_address = serializers.CharField(source='store.address', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items = DeliveryItemSerializer(many=True, read_only=True)

    class Meta:
        model = Delivery
        fields = [
            'id', 'salesman', 'salesman_name', 'salesman_email',
            'store', 'store_name', 'store_address',
            'status', 'status_display', 'notes', 'items',
            'completed_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class DeliveryItemCreateSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class DeliveryCreateSerializer(serializers.Serializer):
    store_id = serializers.IntegerField()
    items = DeliveryItemCreateSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required')
        product_ids = [item['product_id'] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError('Each product may appear only once')
        return value


class DeliveryUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Delivery.Status.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide a status or notes to update')
        return attrs
