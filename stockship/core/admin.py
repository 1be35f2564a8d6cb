from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, ActivityLog, Notification, PlatformSettings


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'is_staff', 'is_superuser', 'date_joined']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'phone']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Platform', {'fields': ('role', 'phone', 'country_code', 'country', 'city')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Platform', {'fields': ('role', 'phone')}),
    )


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'user_type', 'action', 'entity_type', 'entity_id', 'ip_address', 'created_at']
    list_filter = ['user_type', 'entity_type', 'created_at']
    search_fields = ['user__username', 'action', 'entity_id', 'description']
    ordering = ['-created_at']
    readonly_fields = ['user', 'user_type', 'action', 'entity_type', 'entity_id', 'description',
                       'metadata', 'ip_address', 'user_agent', 'created_at']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'type', 'title', 'is_read', 'created_at']
    list_filter = ['type', 'is_read']
    search_fields = ['user__username', 'title']


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    list_display = ['platform_name', 'platform_commission_rate', 'commission_method', 'currency', 'updated_at']
    readonly_fields = ['updated_at']
