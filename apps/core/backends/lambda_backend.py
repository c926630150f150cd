"""
Lambda Task Backend - Async execution via AWS SQS + Lambda.

Messages are sent to the task queue; lambda_handlers.sqs_task_handler
consumes them and runs the registered handler.

Environment Variables:
    TASK_QUEUE_URL: SQS queue URL for task messages
    AWS_REGION: AWS region (default: us-east-1)
"""

import os
import json
import uuid
import logging
from typing import Any, Dict

from django.core.serializers.json import DjangoJSONEncoder

from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)

SQS_MAX_DELAY_SECONDS = 900


def build_message(task_id: str, task_name: str, payload: Dict[str, Any]) -> str:
    """SQS message body; UUIDs and datetimes in the payload become strings."""
    return json.dumps(
        {"task_id": task_id, "task_name": task_name, "payload": payload},
        cls=DjangoJSONEncoder,
    )


class LambdaTaskService(TaskServiceInterface):
    """Execute tasks via AWS SQS + Lambda."""

    def __init__(self, sqs_client=None, queue_url=None):
        self._sqs_client = sqs_client
        self._queue_url = queue_url or os.getenv('TASK_QUEUE_URL')

        if not self._queue_url:
            logger.warning("[LAMBDA] TASK_QUEUE_URL not set. Lambda backend will fail on send_task.")

    @property
    def sqs_client(self):
        if self._sqs_client is None:
            import boto3
            self._sqs_client = boto3.client(
                'sqs',
                region_name=os.getenv('AWS_REGION', 'us-east-1')
            )
        return self._sqs_client

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        if not self._queue_url:
            raise RuntimeError("TASK_QUEUE_URL is not set; cannot send tasks to the Lambda backend.")

        task_id = str(uuid.uuid4())
        logger.info(f"[LAMBDA] Sending task {task_name} to SQS (id={task_id})")

        try:
            response = self.sqs_client.send_message(
                QueueUrl=self._queue_url,
                MessageBody=build_message(task_id, task_name, payload),
                DelaySeconds=min(max(delay_seconds, 0), SQS_MAX_DELAY_SECONDS),
                MessageAttributes={
                    'TaskName': {'DataType': 'String', 'StringValue': task_name},
                    'TaskId': {'DataType': 'String', 'StringValue': task_id},
                },
            )
        except Exception:
            logger.exception(f"[LAMBDA] Failed to send task {task_name}")
            raise

        logger.info(f"[LAMBDA] Task {task_name} queued. SQS MessageId: {response['MessageId']}")
        return task_id
