"""
EagleView roof measurement endpoints.

Errors use the body {"error": {"code": ..., "message": ...}}.
"""
import json
import logging

from django.conf import settings
from django.http import HttpRequest
from ninja import Router
from ninja.responses import codes_4xx

from apps.identity.security import require_auth
from . import services
from .client import EagleViewNotConfigured
from .dtos import MessageOut, OrderIn, OrderOut, OrderStatusOut, RoofingErrorOut, WebhookAckOut

logger = logging.getLogger(__name__)

router = Router(tags=["Roofing"])
webhook_router = Router(tags=["Webhooks"])

WEBHOOK_PATH = "/api/webhooks/eagleview"


def _error(e: services.RoofingError):
    return e.status, {"error": {"code": e.code, "message": e.message}}


def _webhook_url(request: HttpRequest) -> str:
    return getattr(settings, 'EAGLEVIEW_WEBHOOK_URL', None) or request.build_absolute_uri(WEBHOOK_PATH)


@router.post(
    "/order",
    response={200: OrderOut, codes_4xx: RoofingErrorOut, 502: RoofingErrorOut, 503: RoofingErrorOut},
    auth=None,
    exclude_none=True,
)
def create_order(request: HttpRequest, payload: OrderIn):
    """Order a roof measurement report for a roofing job."""
    user = require_auth(request)
    try:
        result = services.create_order(user, payload.dict(), webhook_url=_webhook_url(request))
    except services.RoofingError as e:
        return _error(e)

    order = result.order
    body = {
        "jobId": order.job_id,
        "orderId": order.id,
        "eagleviewOrderId": order.eagleview_order_id,
        "status": order.status,
    }
    if result.created:
        body["estimatedCompletionDate"] = result.estimated_completion_date
    else:
        body["message"] = "An order is already in progress for this job"
    return 200, body


@router.get("/status", response={200: OrderStatusOut, codes_4xx: RoofingErrorOut}, auth=None, exclude_unset=True)
def order_status(request: HttpRequest, jobId: str = None):
    user = require_auth(request)
    try:
        order = services.get_order_status(user, jobId)
    except services.RoofingError as e:
        return _error(e)
    return 200, services.order_status_payload(order)


@webhook_router.post(
    "",
    response={200: WebhookAckOut, 400: MessageOut, 401: MessageOut, 503: MessageOut},
    auth=None,
    exclude_none=True,
)
def eagleview_webhook(request: HttpRequest):
    """
    Status updates pushed by EagleView.

    Unknown orders and processing failures are still acknowledged with 200
    so EagleView does not retry them.
    """
    try:
        secret = services.get_webhook_secret()
    except EagleViewNotConfigured:
        logger.error("EagleView webhook: configuration not available")
        return 503, {"message": "Webhook not configured"}

    signature = request.headers.get('x-webhook-secret') or request.headers.get('x-eagleview-signature')
    if not services.check_webhook_signature(signature, secret):
        logger.error("EagleView webhook: invalid signature")
        return 401, {"message": "Invalid webhook signature"}

    try:
        event = json.loads(request.body)
    except ValueError:
        logger.error("EagleView webhook: invalid JSON body")
        return 400, {"message": "Invalid request body"}

    if not isinstance(event, dict) or not event.get('orderId'):
        logger.error("EagleView webhook: missing orderId")
        return 400, {"message": "Missing orderId"}

    try:
        return 200, services.handle_webhook_event(event)
    except Exception:
        logger.exception("EagleView webhook processing failed")
        return 200, {"received": True, "error": "Internal error"}
