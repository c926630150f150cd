from celery import shared_task
import logging

from apps.core.task_service import TaskService
from .client import EagleViewError, is_eagleview_configured
from .models import EagleViewRoofOrder
from . import services

logger = logging.getLogger(__name__)


@shared_task
def refresh_eagleview_order(order_id):
    """
    Poll EagleView for one order and store any new status or report.
    """
    try:
        order = EagleViewRoofOrder.objects.get(id=order_id)
    except EagleViewRoofOrder.DoesNotExist:
        logger.error(f"EagleView order {order_id} not found.")
        return f"Order {order_id} not found"

    if not order.is_pending:
        return f"Order {order_id} already {order.status}"

    try:
        order = services.refresh_order(order)
    except EagleViewError as e:
        logger.warning(f"EagleView poll failed for order {order_id}: {e}")
        return f"Order {order_id} poll failed"

    return f"Order {order_id} is {order.status}"


@shared_task
def sync_pending_eagleview_orders():
    """
    Queue a refresh for every queued/processing order.
    Scheduled every 15 minutes.
    """
    if not is_eagleview_configured():
        logger.info("EagleView not configured; skipping order sync")
        return "EagleView not configured"

    order_ids = list(services.get_pending_orders().values_list('id', flat=True))
    for order_id in order_ids:
        TaskService.refresh_eagleview_order(order_id)

    logger.info(f"Queued refresh for {len(order_ids)} pending EagleView orders")
    return f"Queued {len(order_ids)} orders"
