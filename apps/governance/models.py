import uuid
from django.db import models


class AuditLog(models.Model):
    """
    Audit trail for admin and contract-relevant actions.

    Emails are copied at write time so entries stay readable after the
    referenced users are deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    actor = models.ForeignKey(
        'identity.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    actor_email = models.EmailField(blank=True)
    target_user_id = models.UUIDField(null=True, blank=True, db_index=True)
    target_user_email = models.EmailField(blank=True)

    action = models.CharField(max_length=50, db_index=True, help_text="Action performed (e.g., GRANT_ENTITLEMENT)")
    resource_type = models.CharField(max_length=50, help_text="Kind of thing changed (e.g., entitlement, proposal)")
    resource_value = models.CharField(max_length=255, blank=True, help_text="Which one (e.g., CREW_ACCESS)")
    previous_value = models.TextField(blank=True, null=True)
    new_value = models.TextField(blank=True, null=True)

    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"

    def __str__(self):
        return f"{self.action} {self.resource_type}:{self.resource_value} by {self.actor_email or 'system'}"
