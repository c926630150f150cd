from django.contrib import admin
from .models import Proposal, ProposalView, ProposalPhoto, ProposalDraftRecord, ProposalTemplate


class ProposalPhotoInline(admin.TabularInline):
    model = ProposalPhoto
    extra = 0
    fields = ['url', 'category', 'caption', 'display_order']


@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = ['id', 'client_name', 'job_type_name', 'owner', 'status', 'is_unlocked', 'created_at']
    list_filter = ['status', 'is_unlocked', 'trade_id']
    search_fields = ['client_name', 'address', 'owner__email']
    readonly_fields = ['public_token', 'accepted_at', 'contractor_signed_at']
    inlines = [ProposalPhotoInline]


@admin.register(ProposalView)
class ProposalViewAdmin(admin.ModelAdmin):
    list_display = ['proposal', 'viewer_ip', 'viewed_at']


@admin.register(ProposalDraftRecord)
class ProposalDraftRecordAdmin(admin.ModelAdmin):
    list_display = ['storage_key', 'user', 'updated_at']


@admin.register(ProposalTemplate)
class ProposalTemplateAdmin(admin.ModelAdmin):
    list_display = ['trade_name', 'job_type_name', 'created_by', 'is_default', 'is_active', 'usage_count']
    list_filter = ['trade_id', 'is_default', 'is_active']
    search_fields = ['trade_name', 'job_type_name']
