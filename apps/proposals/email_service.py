"""
Proposal emails: delivery to the client, acceptance notice to the
contractor, and the countersigned copy back to the client.

Messages go through Django's configured EMAIL_BACKEND (console in
development, locmem in tests, SMTP/SES in production).
"""
import logging
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMessage

from .models import Proposal
from .pricing import calculate_total_price

logger = logging.getLogger(__name__)


def build_public_url(proposal: Proposal) -> Optional[str]:
    if not proposal.public_token:
        return None
    base_url = getattr(settings, 'APP_BASE_URL', 'http://localhost:8000').rstrip('/')
    return f"{base_url}/p/{proposal.public_token}"


def _sender_name(proposal: Proposal) -> str:
    owner = proposal.owner
    return f"{owner.first_name} {owner.last_name}".strip() or owner.company_name or "Your contractor"


def _send(subject: str, body: str, to: str, reply_to: Optional[str] = None) -> int:
    message = EmailMessage(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to],
        reply_to=[reply_to] if reply_to else None,
    )
    return message.send(fail_silently=False)


def send_proposal_to_client(
    proposal: Proposal,
    recipient_email: str,
    recipient_name: Optional[str] = None,
    message: Optional[str] = None,
) -> int:
    owner = proposal.owner
    company = owner.company_name or _sender_name(proposal)
    lines = [
        f"Hi {recipient_name or proposal.client_name},",
        "",
        f"{company} has prepared a proposal for {proposal.job_type_name} at {proposal.address}.",
        f"Estimated total: ${calculate_total_price(proposal):,}",
    ]
    if message:
        lines += ["", message]
    url = build_public_url(proposal)
    if url:
        lines += ["", f"Review and accept the proposal here: {url}"]
    lines += ["", f"- {_sender_name(proposal)}"]

    sent = _send(
        subject=f"Your proposal from {company}",
        body="\n".join(lines),
        to=recipient_email,
        reply_to=owner.email or None,
    )
    logger.info("Proposal %s emailed to client", proposal.id)
    return sent


def send_acceptance_notification(proposal: Proposal) -> int:
    owner = proposal.owner
    if not owner.email or not owner.email_notifications_enabled:
        return 0
    body = "\n".join([
        f"Hi {owner.first_name or 'there'},",
        "",
        f"{proposal.accepted_by_name} ({proposal.accepted_by_email}) accepted your proposal "
        f"for {proposal.job_type_name} at {proposal.address}.",
        f"Total: ${calculate_total_price(proposal):,}",
        "",
        "Countersign the proposal to send the client their completed copy.",
    ])
    return _send(
        subject=f"Proposal accepted by {proposal.client_name}",
        body=body,
        to=owner.email,
    )


def send_completed_proposal_to_client(proposal: Proposal) -> int:
    if not proposal.accepted_by_email:
        return 0
    company = proposal.owner.company_name or _sender_name(proposal)
    lines = [
        f"Hi {proposal.client_name},",
        "",
        f"{company} has countersigned your proposal for {proposal.job_type_name or 'your project'}.",
        f"Total: ${calculate_total_price(proposal):,}",
    ]
    url = build_public_url(proposal)
    if url:
        lines += ["", f"View the signed proposal: {url}"]
    return _send(
        subject=f"Your signed proposal from {company}",
        body="\n".join(lines),
        to=proposal.accepted_by_email,
        reply_to=proposal.owner.email or None,
    )
