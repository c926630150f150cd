from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'resource_type', 'resource_value', 'actor_email', 'target_user_email', 'created_at']
    list_filter = ['action', 'resource_type']
    search_fields = ['actor_email', 'target_user_email', 'resource_value']
    readonly_fields = [f.name for f in AuditLog._meta.fields]
