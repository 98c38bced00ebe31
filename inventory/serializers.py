from rest_framework import serializers
from .levels import stock_status
from .models import Product, StoreStock


class StoreStockSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    min_stock_level = serializers.IntegerField(source='product.min_stock_level', read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = StoreStock
        fields = [
            'id', 'store', 'store_name', 'product', 'product_name', 'product_sku',
            'quantity', 'min_stock_level', 'is_low_stock', 'stock_status', 'updated_at'
        ]
        read_only_fields = fields


class ProductStoreStockSerializer(serializers.ModelSerializer):
    """Per-store quantity of a product"""
    id = serializers.IntegerField(source='store.id', read_only=True)
    name = serializers.CharField(source='store.name', read_only=True)
    stock = serializers.IntegerField(source='quantity', read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = StoreStock
        fields = ['id', 'name', 'stock', 'stock_status']


class ProductSerializer(serializers.ModelSerializer):
    stock = serializers.SerializerMethodField()
    stock_status = serializers.SerializerMethodField()
    stores = ProductStoreStockSerializer(source='store_stocks', many=True, read_only=True)
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'description', 'price', 'min_stock_level',
            'category', 'expiry_date', 'stock', 'stock_status', 'stores',
            'created_by', 'created_by_email', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_stock(self, obj):
        return sum(row.quantity for row in obj.store_stocks.all())

    def get_stock_status(self, obj):
        return stock_status(self.get_stock(obj), obj.min_stock_level)


class InitialStockSerializer(serializers.Serializer):
    """Opening quantity of a new product in one store"""
    store_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=0, max_value=1000000)


class ProductCreateUpdateSerializer(serializers.ModelSerializer):
    initial_stock = InitialStockSerializer(many=True, required=False, write_only=True)

    class Meta:
        model = Product
        fields = [
            'sku', 'name', 'description', 'price', 'min_stock_level',
            'category', 'expiry_date', 'initial_stock'
        ]
        extra_kwargs = {
            'min_stock_level': {'max_value': 1000000},
        }

    def validate_initial_stock(self, value):
        store_ids = [row['store_id'] for row in value]
        if len(store_ids) != len(set(store_ids)):
            raise serializers.ValidationError('Each store may appear only once')
        return value

    def validate(self, attrs):
        if self.instance is not None and 'initial_stock' in attrs:
            raise serializers.ValidationError(
                {'initial_stock': 'Opening stock can only be set when creating a product. Use stock adjustments instead.'}
            )
        return attrs
