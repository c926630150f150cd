from celery import shared_task
import logging

from .models import Proposal
from . import email_service

logger = logging.getLogger(__name__)


def _load(proposal_id):
    try:
        return Proposal.objects.select_related('owner').get(id=proposal_id)
    except Proposal.DoesNotExist:
        logger.error(f"Proposal {proposal_id} not found.")
        return None


@shared_task
def send_proposal_email(proposal_id, recipient_email, recipient_name=None, message=None):
    """
    Email a proposal link to the client.
    """
    proposal = _load(proposal_id)
    if proposal is None:
        return f"Proposal {proposal_id} not found"

    email_service.send_proposal_to_client(
        proposal,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        message=message,
    )
    return f"Sent proposal {proposal_id}"


@shared_task
def send_proposal_accepted_notification(proposal_id):
    """Tell the contractor their client accepted."""
    proposal = _load(proposal_id)
    if proposal is None:
        return f"Proposal {proposal_id} not found"
    sent = email_service.send_acceptance_notification(proposal)
    return f"Acceptance notification for {proposal_id}: {sent} sent"


@shared_task
def send_completed_proposal_email(proposal_id):
    proposal = _load(proposal_id)
    if proposal is None:
        return f"Proposal {proposal_id} not found"
    sent = email_service.send_completed_proposal_to_client(proposal)
    return f"Completed proposal {proposal_id}: {sent} sent"
