"""
EagleView order lifecycle: placing orders, webhook updates and status polling.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db.models import QuerySet

from apps.identity.models import User
from .client import (
    EagleViewAddress,
    EagleViewClient,
    EagleViewError,
    get_eagleview_config,
    is_eagleview_configured,
    map_eagleview_status,
    parse_address,
    parse_roofing_measurements,
    verify_webhook_signature,
)
from .models import EagleViewRoofOrder

logger = logging.getLogger(__name__)

Status = EagleViewRoofOrder.Status

MIN_ADDRESS_LENGTH = 10


class RoofingError(Exception):
    """Error with a machine-readable code and the HTTP status to answer with."""

    def __init__(self, code: str, message: str, status: int = 400):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status


@dataclass(frozen=True)
class OrderResult:
    order: EagleViewRoofOrder
    created: bool
    estimated_completion_date: Optional[str] = None


def _resolve_address(data: Dict[str, Any]):
    """Returns (EagleViewAddress, display string) from a full address or its components."""
    address = data.get('address')
    if address:
        if len(address) < MIN_ADDRESS_LENGTH:
            raise RoofingError('INVALID_INPUT', 'Full address is required')
        parsed = parse_address(address)
        if not parsed:
            raise RoofingError(
                'INVALID_INPUT',
                'Could not parse address. Please provide address components (address1, city, state, zip).',
            )
        return parsed, address

    components = [data.get(k) for k in ('address1', 'city', 'state', 'zip')]
    if not all(components):
        raise RoofingError(
            'INVALID_INPUT',
            "Either 'address' or address components (address1, city, state, zip) are required",
        )
    parsed = EagleViewAddress(*components)
    return parsed, parsed.formatted()


def get_latest_order(user: User, job_id: str) -> Optional[EagleViewRoofOrder]:
    return EagleViewRoofOrder.objects.filter(user=user, job_id=job_id).order_by('-created_at').first()


def create_order(
    user: User,
    data: Dict[str, Any],
    webhook_url: Optional[str] = None,
    client: Optional[EagleViewClient] = None,
) -> OrderResult:
    """
    Place an EagleView measurement order for a roofing job.

    An order already queued or processing for the job is returned as-is.
    A failed EagleView call is recorded as a failed order and re-raised
    as EAGLEVIEW_ERROR.
    """
    if not is_eagleview_configured():
        raise RoofingError('NOT_CONFIGURED', 'EagleView integration is not configured', status=503)

    job_id = data.get('jobId')
    if not job_id:
        raise RoofingError('INVALID_INPUT', 'jobId is required')
    if data.get('trade') != 'roofing':
        raise RoofingError('INVALID_INPUT', 'EagleView measurements are only available for roofing')

    existing = get_latest_order(user, job_id)
    if existing and existing.is_pending:
        return OrderResult(order=existing, created=False)

    address, full_address = _resolve_address(data)
    order_id = uuid.uuid4()

    try:
        client = client or EagleViewClient()
        response = client.create_measurement_order(address, str(order_id), webhook_url)
    except EagleViewError as e:
        logger.error("EagleView order creation failed for job %s: %s", job_id, e)
        EagleViewRoofOrder.objects.create(
            id=order_id,
            job_id=job_id,
            user=user,
            address=full_address,
            status=Status.FAILED,
            error_message=str(e),
        )
        raise RoofingError('EAGLEVIEW_ERROR', 'Failed to create EagleView order', status=502)

    order = EagleViewRoofOrder.objects.create(
        id=order_id,
        job_id=job_id,
        user=user,
        address=full_address,
        status=Status.QUEUED,
        eagleview_order_id=response.get('orderId'),
    )
    logger.info("EagleView order created: %s -> %s for job %s", order.id, order.eagleview_order_id, job_id)
    return OrderResult(order=order, created=True, estimated_completion_date=response.get('estimatedCompletionDate'))


def get_order_status(user: User, job_id: Optional[str]) -> EagleViewRoofOrder:
    if not job_id:
        raise RoofingError('INVALID_INPUT', 'jobId query parameter is required')
    order = get_latest_order(user, job_id)
    if not order:
        raise RoofingError('NOT_FOUND', 'No EagleView order found for this job', status=404)
    return order


def order_status_payload(order: EagleViewRoofOrder) -> Dict[str, Any]:
    payload = {
        'jobId': order.job_id,
        'orderId': order.id,
        'status': order.status,
        'eagleviewOrderId': order.eagleview_order_id,
        'createdAt': order.created_at,
        'updatedAt': order.updated_at,
    }
    if order.status == Status.COMPLETED:
        payload['reportUrl'] = order.report_url
        payload['reportId'] = order.eagleview_report_id
        payload['measurements'] = order.roofing_measurements
    elif order.status == Status.FAILED:
        payload['errorMessage'] = order.error_message
    return payload


# =============================================================================
# Webhooks
# =============================================================================

def get_webhook_secret() -> str:
    """Raises EagleViewNotConfigured when the integration is not set up."""
    return get_eagleview_config().webhook_secret


def check_webhook_signature(signature: Optional[str], secret: str) -> bool:
    if not secret:
        logger.warning("EagleView webhook: no webhook secret configured, skipping verification")
        return True
    return verify_webhook_signature(signature, secret)


def _fetch_report(report_id: str, client: Optional[EagleViewClient] = None):
    """Returns (report, measurements); both None when the report can't be fetched."""
    try:
        report = (client or EagleViewClient()).get_report(report_id)
    except EagleViewError:
        logger.exception("Failed to fetch EagleView report %s", report_id)
        return None, None
    return report, parse_roofing_measurements(report)


def handle_webhook_event(event: Dict[str, Any], client: Optional[EagleViewClient] = None) -> Dict[str, Any]:
    """Apply a webhook event to its order. Returns the acknowledgement body."""
    ev_order_id = event['orderId']
    event_type = event.get('eventType')
    logger.info("EagleView webhook received: %s for order %s", event_type, ev_order_id)

    order = EagleViewRoofOrder.objects.filter(eagleview_order_id=ev_order_id).first()
    if not order:
        logger.warning("EagleView webhook: order %s not found", ev_order_id)
        return {'received': True, 'message': 'Order not found'}

    if event_type == 'ORDER_STATUS_UPDATE':
        if event.get('status'):
            order.status = map_eagleview_status(event['status'])
            order.payload_json = {'lastEvent': event}
            order.save()
            logger.info("EagleView order %s status updated to %s", order.id, order.status)

    elif event_type == 'REPORT_READY':
        report, measurements = None, None
        report_id = event.get('reportId')
        if report_id:
            report, measurements = _fetch_report(report_id, client)

        order.status = Status.COMPLETED
        order.eagleview_report_id = report_id
        order.report_url = event.get('reportUrl') or (report or {}).get('reportUrl')
        if measurements:
            order.roofing_measurements = measurements
        order.payload_json = {'lastEvent': event}
        if report:
            order.payload_json['reportData'] = report
        order.save()
        logger.info("EagleView order %s completed (report %s)", order.id, report_id)

    elif event_type == 'ORDER_FAILED':
        order.status = Status.FAILED
        order.error_message = (event.get('error') or {}).get('message') or 'Order failed'
        order.payload_json = {'lastEvent': event}
        order.save()
        logger.warning("EagleView order %s failed: %s", order.id, order.error_message)

    else:
        logger.debug("EagleView webhook: unhandled event type %s", event_type)

    return {'received': True}


# =============================================================================
# Polling
# =============================================================================

def get_pending_orders() -> QuerySet:
    return EagleViewRoofOrder.objects.filter(
        status__in=EagleViewRoofOrder.PENDING_STATUSES,
        eagleview_order_id__isnull=False,
    ).exclude(eagleview_order_id='')


def refresh_order(order: EagleViewRoofOrder, client: Optional[EagleViewClient] = None) -> EagleViewRoofOrder:
    """
    Poll EagleView for an order's status. When a report is available the
    measurements are fetched and the order is completed.
    """
    if not order.eagleview_order_id:
        return order

    client = client or EagleViewClient()
    data = client.get_order_status(order.eagleview_order_id)
    new_status = map_eagleview_status(data.get('status'))
    report_id = data.get('reportId')

    order.payload_json = {**(order.payload_json or {}), 'lastPoll': data}

    if report_id and new_status == Status.COMPLETED:
        report, measurements = _fetch_report(report_id, client)
        order.eagleview_report_id = report_id
        if report:
            order.report_url = report.get('reportUrl') or order.report_url
            order.payload_json['reportData'] = report
        if measurements:
            order.roofing_measurements = measurements
    elif new_status == Status.FAILED and not order.error_message:
        order.error_message = 'Order failed'

    if order.status != new_status:
        logger.info("EagleView order %s: %s -> %s", order.id, order.status, new_status)
    order.status = new_status
    order.save()
    return order
