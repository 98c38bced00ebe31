from django.contrib import admin
from .models import Store, StoreStaff


class StoreStaffInline(admin.TabularInline):
    model = StoreStaff
    extra = 0
    raw_id_fields = ['user']


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner_name', 'city', 'province', 'type', 'status', 'approved_at', 'created_at']
    list_filter = ['status', 'type', 'province', 'created_at']
    search_fields = ['name', 'owner_name', 'owner_phone', 'owner_email', 'city', 'address']
    readonly_fields = ['approved_at', 'approved_by', 'created_at', 'updated_at']
    inlines = [StoreStaffInline]


@admin.register(StoreStaff)
class StoreStaffAdmin(admin.ModelAdmin):
    list_display = ['store', 'user', 'created_at']
    search_fields = ['store__name', 'user__email']
    raw_id_fields = ['store', 'user']
