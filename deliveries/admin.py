from django.contrib import admin
from .models import Delivery, DeliveryItem


class DeliveryItemInline(admin.TabularInline):
    model = DeliveryItem
    extra = 0


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ['id', 'store', 'salesman', 'status', 'completed_at', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['store__name', 'salesman__email', 'notes']
    # Status changes go through the API so stock is applied exactly once
    readonly_fields = ['status', 'completed_at', 'created_at', 'updated_at']
    inlines = [DeliveryItemInline]
