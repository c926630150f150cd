from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'role', 'subscription_plan', 'proposal_credits', 'is_active']
    list_filter = ['role', 'subscription_plan', 'is_active']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('ScopeGen', {
            'fields': (
                'role', 'entitlements', 'subscription_plan', 'proposal_credits',
                'credits_expire_at', 'trial_ends_at',
            )
        }),
        ('Company', {
            'fields': (
                'company_name', 'company_address', 'company_phone',
                'company_logo', 'license_number', 'phone',
            )
        }),
    )
