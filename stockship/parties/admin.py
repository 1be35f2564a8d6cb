from django.contrib import admin
from .models import Employee, Trader


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ['employee_code', 'user', 'commission_rate', 'created_at']
    search_fields = ['employee_code', 'user__username', 'user__email', 'user__first_name', 'user__last_name']
    raw_id_fields = ['user', 'created_by']


@admin.register(Trader)
class TraderAdmin(admin.ModelAdmin):
    list_display = ['trader_code', 'company_name', 'user', 'employee', 'is_verified', 'created_at']
    list_filter = ['is_verified', 'country']
    search_fields = ['trader_code', 'company_name', 'user__username', 'user__email', 'barcode']
    raw_id_fields = ['user', 'employee', 'linked_client']
