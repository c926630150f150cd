from django.contrib import admin
from .models import EagleViewRoofOrder


@admin.register(EagleViewRoofOrder)
class EagleViewRoofOrderAdmin(admin.ModelAdmin):
    list_display = ['job_id', 'user', 'status', 'eagleview_order_id', 'created_at', 'updated_at']
    list_filter = ['status']
    search_fields = ['job_id', 'eagleview_order_id', 'address', 'user__email']
    readonly_fields = ['payload_json', 'roofing_measurements', 'created_at', 'updated_at']
