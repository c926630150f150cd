"""
Local Task Backend - Synchronous execution for development.

This backend executes tasks immediately in the same process.
No Redis, SQS, or external dependencies required.

Usage:
    Set TASK_BACKEND=local in your .env file.
"""

import uuid
import logging
from typing import Any, Dict
from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


# Task handler registry - maps task names to handler functions
TASK_HANDLERS = {}


def register_handler(task_name: str):
    """Decorator to register a task handler."""
    def decorator(func):
        TASK_HANDLERS[task_name] = func
        return func
    return decorator


class LocalTaskService(TaskServiceInterface):
    """
    Execute tasks synchronously in the same process.

    This is ideal for:
    - Local development without Docker/Redis
    - Unit testing with immediate execution

    Note: Tasks run in the same request cycle, so they block
    the response. Only use for development.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Execute task synchronously."""
        task_id = str(uuid.uuid4())

        logger.info(f"[LOCAL] Executing task {task_name} (id={task_id})")

        if delay_seconds > 0:
            logger.warning(
                f"[LOCAL] delay_seconds={delay_seconds} ignored in local backend"
            )

        handler = TASK_HANDLERS.get(task_name)
        if handler:
            try:
                result = handler(**payload)
                logger.info(f"[LOCAL] Task {task_name} completed: {result}")
            except Exception as e:
                logger.exception(f"[LOCAL] Task {task_name} failed: {e}")
                raise
        else:
            logger.warning(f"[LOCAL] No handler registered for task: {task_name}")

        return task_id


# =============================================================================
# Task Handlers - the Celery task bodies, called in-process
# =============================================================================

@register_handler("send_proposal_email")
def handle_send_proposal_email(proposal_id, recipient_email, recipient_name=None, message=None):
    from apps.proposals.tasks import send_proposal_email
    return send_proposal_email(proposal_id, recipient_email, recipient_name, message)


@register_handler("send_proposal_accepted_notification")
def handle_send_proposal_accepted_notification(proposal_id):
    from apps.proposals.tasks import send_proposal_accepted_notification
    return send_proposal_accepted_notification(proposal_id)


@register_handler("send_completed_proposal_email")
def handle_send_completed_proposal_email(proposal_id):
    from apps.proposals.tasks import send_completed_proposal_email
    return send_completed_proposal_email(proposal_id)


@register_handler("refresh_eagleview_order")
def handle_refresh_eagleview_order(order_id: str):
    from apps.roofing.tasks import refresh_eagleview_order
    return refresh_eagleview_order(order_id)


@register_handler("sync_pending_eagleview_orders")
def handle_sync_pending_eagleview_orders():
    """Refresh every pending order; in local mode the fan-out runs inline."""
    from apps.roofing.tasks import sync_pending_eagleview_orders
    return sync_pending_eagleview_orders()
