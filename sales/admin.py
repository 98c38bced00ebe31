from django.contrib import admin
from .models import Sale, SaleItem


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'price', 'line_total']


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['id', 'store', 'user', 'total', 'status', 'created_at']
    list_filter = ['status', 'store', 'created_at']
    search_fields = ['store__name', 'user__email', 'notes']
    readonly_fields = ['store', 'user', 'total', 'status', 'created_at']
    inlines = [SaleItemInline]
