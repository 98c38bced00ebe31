from django.contrib import admin
from .models import Product, StoreStock


class StoreStockInline(admin.TabularInline):
    model = StoreStock
    extra = 0
    readonly_fields = ['quantity', 'updated_at']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'category', 'price', 'min_stock_level', 'expiry_date', 'created_at']
    list_filter = ['category']
    search_fields = ['sku', 'name', 'category']
    readonly_fields = ['created_by', 'created_at', 'updated_at']
    inlines = [StoreStockInline]


@admin.register(StoreStock)
class StoreStockAdmin(admin.ModelAdmin):
    list_display = ['store', 'product', 'quantity', 'updated_at']
    list_filter = ['store']
    search_fields = ['store__name', 'product__sku', 'product__name']
    # Quantities change through stock adjustments only
    readonly_fields = ['quantity', 'updated_at']
