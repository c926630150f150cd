"""
Celery configuration for ScopeGen project.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'sync-pending-eagleview-orders': {
        'task': 'apps.roofing.tasks.sync_pending_eagleview_orders',
        'schedule': crontab(minute='*/15'),  # Backstop for missed webhooks
    },
}
