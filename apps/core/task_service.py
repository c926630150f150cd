"""
TaskService - Abstraction layer for async task execution.

This module provides a platform-agnostic interface for executing background tasks.
The actual backend is determined by the TASK_BACKEND environment variable.

Usage:
    from apps.core.task_service import TaskService

    # Queue a proposal email
    TaskService.send_proposal_email(proposal_id=42, recipient_email="client@example.com")

    # Refresh one EagleView order from the provider
    TaskService.refresh_eagleview_order(order_id=uuid)

Environment Configuration:
    TASK_BACKEND=local   # Sync execution (development)
    TASK_BACKEND=lambda  # AWS Lambda + SQS (production)
    TASK_BACKEND=celery  # Celery + Redis (fallback)
"""

import os
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import UUID

logger = logging.getLogger(__name__)


class TaskServiceInterface(ABC):
    """
    Abstract interface for async task execution.

    Implementations:
    - LocalTaskService: Sync execution for development/testing
    - LambdaTaskService: AWS Lambda + SQS for production
    - CeleryTaskService: Celery + Redis as fallback
    """

    @abstractmethod
    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """
        Queue a task for async execution.

        Args:
            task_name: Identifier for the task handler
            payload: Keyword arguments for the task (JSON-serializable)
            delay_seconds: Delay before execution (0 = immediate)

        Returns:
            Task ID for tracking
        """


def _get_backend() -> TaskServiceInterface:
    """Get the configured task backend based on TASK_BACKEND env var."""
    backend = os.getenv('TASK_BACKEND', 'local')

    if backend == 'local':
        from apps.core.backends.local_backend import LocalTaskService
        return LocalTaskService()
    elif backend == 'lambda':
        from apps.core.backends.lambda_backend import LambdaTaskService
        return LambdaTaskService()
    elif backend == 'celery':
        from apps.core.backends.celery_backend import CeleryTaskService
        return CeleryTaskService()
    else:
        raise ValueError(f"Unknown TASK_BACKEND: {backend}")


class TaskService:
    """
    Facade for sending async tasks.

    This class provides static methods for each task type,
    delegating to the configured backend.
    """

    @staticmethod
    def send_proposal_email(
        proposal_id: int,
        recipient_email: str,
        recipient_name: Optional[str] = None,
        message: Optional[str] = None,
    ) -> str:
        """
        Queue delivery of a proposal link to the client.

        Used by: Proposals app when a contractor sends a proposal.
        """
        logger.info(f"Queueing send_proposal_email task for proposal {proposal_id}")
        return _get_backend().send_task(
            task_name="send_proposal_email",
            payload={
                "proposal_id": proposal_id,
                "recipient_email": recipient_email,
                "recipient_name": recipient_name,
                "message": message,
            }
        )

    @staticmethod
    def send_proposal_accepted_notification(proposal_id: int) -> str:
        logger.info(f"Queueing send_proposal_accepted_notification for proposal {proposal_id}")
        return _get_backend().send_task(
            task_name="send_proposal_accepted_notification",
            payload={"proposal_id": proposal_id}
        )

    @staticmethod
    def send_completed_proposal_email(proposal_id: int) -> str:
        logger.info(f"Queueing send_completed_proposal_email for proposal {proposal_id}")
        return _get_backend().send_task(
            task_name="send_completed_proposal_email",
            payload={"proposal_id": proposal_id}
        )

    @staticmethod
    def refresh_eagleview_order(order_id: UUID) -> str:
        """
        Queue a status poll for one EagleView order.

        Used by: Fan-out from sync_pending_eagleview_orders.
        """
        logger.info(f"Queueing refresh_eagleview_order for order {order_id}")
        return _get_backend().send_task(
            task_name="refresh_eagleview_order",
            payload={"order_id": str(order_id)}
        )

    @staticmethod
    def sync_pending_eagleview_orders() -> str:
        """
        Queue a sweep over every queued/processing EagleView order.

        Used by: Scheduled job every 15 minutes.
        """
        logger.info("Queueing sync_pending_eagleview_orders task")
        return _get_backend().send_task(
            task_name="sync_pending_eagleview_orders",
            payload={}
        )
