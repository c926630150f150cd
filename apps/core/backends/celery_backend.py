"""
Celery Task Backend - Async execution via Celery + Redis.

Serves as a fallback option if Lambda doesn't meet requirements.

Usage:
    Set TASK_BACKEND=celery in your .env file.
    Requires Redis and Celery worker running.
"""

import uuid
import logging
from typing import Any, Dict
from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


# Task names to registered Celery task names
CELERY_TASKS = {
    "send_proposal_email": "apps.proposals.tasks.send_proposal_email",
    "send_proposal_accepted_notification": "apps.proposals.tasks.send_proposal_accepted_notification",
    "send_completed_proposal_email": "apps.proposals.tasks.send_completed_proposal_email",
    "refresh_eagleview_order": "apps.roofing.tasks.refresh_eagleview_order",
    "sync_pending_eagleview_orders": "apps.roofing.tasks.sync_pending_eagleview_orders",
}


class CeleryTaskService(TaskServiceInterface):
    """
    Execute tasks via Celery + Redis.

    Payloads are passed to the Celery task as keyword arguments.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue task via Celery."""
        celery_name = CELERY_TASKS.get(task_name)
        if not celery_name:
            logger.error(f"[CELERY] Task not found: {task_name}")
            raise ValueError(f"No Celery task mapped for: {task_name}")

        task_id = str(uuid.uuid4())
        logger.info(f"[CELERY] Queueing task {task_name} (id={task_id})")

        from celery import current_app
        current_app.send_task(
            celery_name,
            kwargs=payload,
            countdown=delay_seconds or None,
            task_id=task_id,
        )
        return task_id
