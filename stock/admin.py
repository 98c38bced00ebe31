from django.contrib import admin
from .models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'store', 'product', 'delta', 'quantity_before', 'quantity_after', 'reason', 'performed_by']
    list_filter = ['reason', 'store', 'created_at']
    search_fields = ['product__sku', 'product__name', 'store__name', 'reference']
    readonly_fields = [f.name for f in StockMovement._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
