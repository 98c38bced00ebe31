from rest_framework import serializers
from .models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    store_name = serializers.CharField(source='store.name', read_only=True)
    performed_by_email = serializers.CharField(source='performed_by.email', read_only=True, default=None)
    reason_display = serializers.CharField(source='get_reason_display', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'store', 'store_name', 'product', 'product_name', 'product_sku',
            'delta', 'quantity_before', 'quantity_after',
            'reason', 'reason_display', 'reference', 'notes',
            'performed_by', 'performed_by_email', 'created_at'
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    """Serializer for manual stock adjustments"""
    store_id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    adjustment_type = serializers.ChoiceField(choices=['IN', 'OUT', 'SET'])
    quantity = serializers.IntegerField(min_value=0, max_value=1000000)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['adjustment_type'] != 'SET' and attrs['quantity'] < 1:
            raise serializers.ValidationError(
                {'quantity': 'Quantity must be at least 1 for IN and OUT adjustments'}
            )
        return attrs
