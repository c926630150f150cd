import uuid
from django.db import models


class EagleViewRoofOrder(models.Model):
    """A roof measurement report ordered from EagleView for one job."""

    class Status(models.TextChoices):
        CREATED = 'created', 'Created'
        QUEUED = 'queued', 'Queued'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    PENDING_STATUSES = (Status.QUEUED, Status.PROCESSING)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job_id = models.CharField(max_length=100, db_index=True)
    user = models.ForeignKey('identity.User', on_delete=models.CASCADE, related_name='eagleview_orders')
    address = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CREATED)

    eagleview_order_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    eagleview_report_id = models.CharField(max_length=100, blank=True, null=True)
    report_url = models.URLField(max_length=1024, blank=True, null=True)
    payload_json = models.JSONField(null=True, blank=True)
    roofing_measurements = models.JSONField(null=True, blank=True)
    error_message = models.TextField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'EagleView roof order'

    def __str__(self):
        return f"EagleView order for job {self.job_id} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status in self.PENDING_STATUSES
