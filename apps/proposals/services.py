"""Proposal lifecycle, dashboard stats and proposal templates."""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from django.db import transaction
from django.db.models import Count, F, Max, Q, QuerySet, Sum
from django.utils import timezone

from apps.billing.services import (
    deduct_proposal_credit,
    get_effective_credits,
    has_active_subscription,
    is_trial_active,
)
from apps.core.task_service import TaskService
from apps.governance.audit_service import AuditAction, log_action
from apps.identity.models import User

from . import draft_persistence
from .email_service import build_public_url
from .models import Proposal, ProposalDraftRecord, ProposalStatus, ProposalTemplate, ProposalView
from .pricing import round_half_up

logger = logging.getLogger(__name__)

MIN_COUNTERSIGNATURE_LENGTH = 1000
DASHBOARD_WINDOW_DAYS = 30

# Statuses an owner may set directly; acceptance only happens through the signing link
MANUAL_STATUSES = frozenset(ProposalStatus.values) - {ProposalStatus.ACCEPTED.value}


class ProposalError(Exception):
    """Base error; status is the HTTP status the API layer should answer with."""
    status = 400

    def __init__(self, message: str, status: Optional[int] = None, **extra):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.extra = extra


class ProposalNotFound(ProposalError):
    status = 404

    def __init__(self, message: str = "Proposal not found"):
        super().__init__(message)


class ProposalAccessDenied(ProposalError):
    status = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class PaymentRequired(ProposalError):
    status = 402


class TemplateNotFound(ProposalError):
    status = 404

    def __init__(self, message: str = "Template not found"):
        super().__init__(message)


@dataclass(frozen=True)
class UnlockResult:
    proposal: Proposal
    remaining_credits: int
    credit_deducted: bool


@dataclass(frozen=True)
class SendResult:
    public_url: Optional[str]
    task_id: str
    sent_at: object


@dataclass(frozen=True)
class DashboardStats:
    proposal_credits: int
    credits_expire_at: Optional[datetime]
    total_proposals: int
    pending: int
    accepted: int
    won: int
    revenue_won: int


# =============================================================================
# CRUD
# =============================================================================

def _check_price_range(price_low, price_high):
    if price_low is None or price_high is None:
        raise ProposalError("Price range is required")
    if price_low > price_high:
        raise ProposalError("price_low cannot exceed price_high")


def create_proposal(user: User, data: dict) -> Proposal:
    _check_price_range(data.get('price_low'), data.get('price_high'))
    line_items = data.get('line_items') or None
    proposal = Proposal.objects.create(
        owner=user,
        is_multi_service=bool(line_items and len(line_items) > 1),
        **{k: v for k, v in data.items() if k != 'is_multi_service'}
    )
    logger.info("Proposal %s created by user %s", proposal.id, user.id)
    return proposal


def list_proposals(user: User) -> QuerySet:
    return (
        Proposal.objects.filter(owner=user)
        .annotate(view_count=Count('views'), last_viewed_at=Max('views__viewed_at'))
        .order_by('-created_at')
    )


def get_owned_proposal(user: User, proposal_id: int) -> Proposal:
    proposal = Proposal.objects.select_related('owner').filter(id=proposal_id).first()
    if not proposal:
        raise ProposalNotFound()
    if proposal.owner_id != user.id:
        raise ProposalAccessDenied()
    return proposal


def update_proposal(user: User, proposal_id: int, data: dict) -> Proposal:
    proposal = get_owned_proposal(user, proposal_id)
    if 'status' in data:
        status = data['status']
        if status == ProposalStatus.ACCEPTED and proposal.status != ProposalStatus.ACCEPTED:
            raise ProposalError("Proposals can only be accepted by the client")
        if status not in MANUAL_STATUSES and status != proposal.status:
            raise ProposalError(f"Invalid status: {status}")
    for key, value in data.items():
        setattr(proposal, key, value)
    _check_price_range(proposal.price_low, proposal.price_high)
    if 'line_items' in data:
        proposal.is_multi_service = bool(proposal.line_items and len(proposal.line_items) > 1)
    proposal.save()
    return proposal


def delete_proposal(user: User, proposal_id: int) -> None:
    proposal = get_owned_proposal(user, proposal_id)
    if proposal.status != ProposalStatus.DRAFT:
        raise ProposalAccessDenied("Only draft proposals can be deleted")
    proposal.delete()


# =============================================================================
# Unlock & send
# =============================================================================

def unlock_proposal(user: User, proposal_id: int) -> UnlockResult:
    """
    Unlock a proposal for sending.

    Free during an open trial or an active subscription; otherwise one
    proposal credit is spent.
    """
    proposal = get_owned_proposal(user, proposal_id)
    if proposal.is_unlocked:
        return UnlockResult(proposal, get_effective_credits(user), False)

    now = timezone.now()
    credit_deducted = False
    if is_trial_active(user, now):
        method = "trial"
    elif has_active_subscription(user):
        method = "subscription"
    elif get_effective_credits(user, now) > 0:
        if not deduct_proposal_credit(user):
            raise PaymentRequired("Failed to deduct credit", requires_payment=True)
        credit_deducted = True
        method = "credit"
    else:
        raise PaymentRequired(
            "No credits available. Purchase credits or subscribe to Pro.",
            requires_payment=True,
            no_credits=True,
            requires_upgrade=True,
        )

    proposal.is_unlocked = True
    proposal.save(update_fields=['is_unlocked', 'updated_at'])

    log_action(
        actor=user,
        action=AuditAction.UNLOCK_PROPOSAL,
        resource_type="proposal",
        resource_value=str(proposal.id),
        target_user=user,
        previous_value=False,
        new_value=True,
        metadata={"method": method},
    )
    return UnlockResult(proposal, get_effective_credits(user), credit_deducted)


def ensure_public_token(proposal: Proposal) -> str:
    if not proposal.public_token:
        proposal.public_token = secrets.token_urlsafe(24)
        proposal.save(update_fields=['public_token', 'updated_at'])
    return proposal.public_token


def send_proposal(
    user: User,
    proposal_id: int,
    recipient_email: Optional[str],
    recipient_name: Optional[str] = None,
    message: Optional[str] = None,
) -> SendResult:
    if not recipient_email:
        raise ProposalError("Recipient email is required")

    proposal = get_owned_proposal(user, proposal_id)
    if not proposal.is_unlocked:
        raise PaymentRequired("Proposal must be unlocked first", requires_unlock=True)

    ensure_public_token(proposal)
    task_id = TaskService.send_proposal_email(
        proposal_id=proposal.id,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        message=message,
    )

    if proposal.status == ProposalStatus.DRAFT:
        proposal.status = ProposalStatus.SENT
        proposal.save(update_fields=['status', 'updated_at'])

    return SendResult(public_url=build_public_url(proposal), task_id=task_id, sent_at=timezone.now())


# =============================================================================
# Public link
# =============================================================================

def get_proposal_by_token(token: str) -> Proposal:
    proposal = Proposal.objects.select_related('owner').filter(public_token=token).first() if token else None
    if not proposal:
        raise ProposalNotFound()
    return proposal


def view_public_proposal(token: str, viewer_ip: str = "", user_agent: str = "") -> Proposal:
    """Fetch a proposal by its public token, recording the view."""
    proposal = get_proposal_by_token(token)
    ProposalView.objects.create(proposal=proposal, viewer_ip=viewer_ip or "", user_agent=user_agent or "")
    if proposal.status == ProposalStatus.SENT:
        proposal.status = ProposalStatus.VIEWED
        proposal.save(update_fields=['status', 'updated_at'])
    return proposal


def accept_proposal(token: str, name: str, email: str, signature: str) -> Proposal:
    if not name or not email:
        raise ProposalError("Name and email are required")
    if not signature:
        raise ProposalError("Signature is required")

    with transaction.atomic():
        proposal = get_proposal_by_token(token)
        proposal = Proposal.objects.select_for_update().get(id=proposal.id)
        if proposal.status == ProposalStatus.ACCEPTED or proposal.accepted_at:
            raise ProposalError("This proposal has already been accepted")

        proposal.status = ProposalStatus.ACCEPTED
        proposal.accepted_at = timezone.now()
        proposal.accepted_by_name = name
        proposal.accepted_by_email = email
        proposal.signature = signature
        proposal.save()

    log_action(
        action=AuditAction.ACCEPT_PROPOSAL,
        resource_type="proposal",
        resource_value=str(proposal.id),
        target_user=proposal.owner,
        new_value=ProposalStatus.ACCEPTED.value,
        metadata={"accepted_by_name": name, "accepted_by_email": email},
    )
    try:
        TaskService.send_proposal_accepted_notification(proposal_id=proposal.id)
    except Exception:
        logger.exception("Acceptance notification for proposal %s failed", proposal.id)
    return proposal


def countersign_proposal(user: User, proposal_id: int, signature) -> Proposal:
    if not isinstance(signature, str) or not signature.startswith('data:image/'):
        raise ProposalError("Valid signature is required")
    if len(signature) < MIN_COUNTERSIGNATURE_LENGTH:
        raise ProposalError("Please provide a valid signature")

    proposal = get_owned_proposal(user, proposal_id)
    if proposal.status != ProposalStatus.ACCEPTED:
        raise ProposalError("Proposal must be accepted by client before countersigning")
    if proposal.contractor_signature:
        raise ProposalError("Proposal has already been countersigned")

    proposal.contractor_signature = signature
    proposal.contractor_signed_at = timezone.now()
    proposal.save(update_fields=['contractor_signature', 'contractor_signed_at', 'updated_at'])

    log_action(
        actor=user,
        action=AuditAction.COUNTERSIGN_PROPOSAL,
        resource_type="proposal",
        resource_value=str(proposal.id),
        target_user=user,
        new_value=proposal.contractor_signed_at.isoformat(),
    )
    if proposal.accepted_by_email:
        try:
            TaskService.send_completed_proposal_email(proposal_id=proposal.id)
        except Exception:
            logger.exception("Completed proposal email for proposal %s failed", proposal.id)
    return proposal


# =============================================================================
# Dashboard
# =============================================================================

def get_dashboard_stats(user: User, now=None) -> DashboardStats:
    """
    Headline numbers over proposals created in the last 30 days.

    Pending counts drafts and sent proposals still awaiting a response;
    revenue_won sums the price-range midpoints of won proposals.
    """
    now = now or timezone.now()
    won = Q(status=ProposalStatus.WON)
    totals = Proposal.objects.filter(
        owner=user,
        created_at__gte=now - timedelta(days=DASHBOARD_WINDOW_DAYS),
    ).aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status__in=[ProposalStatus.DRAFT, ProposalStatus.SENT])),
        accepted=Count('id', filter=Q(status=ProposalStatus.ACCEPTED)),
        won=Count('id', filter=won),
        won_low=Sum('price_low', filter=won),
        won_high=Sum('price_high', filter=won),
    )

    return DashboardStats(
        proposal_credits=get_effective_credits(user, now),
        credits_expire_at=user.credits_expire_at,
        total_proposals=totals['total'],
        pending=totals['pending'],
        accepted=totals['accepted'],
        won=totals['won'],
        revenue_won=round_half_up(((totals['won_low'] or 0) + (totals['won_high'] or 0)) / 2),
    )


# =============================================================================
# Templates
# =============================================================================

def _visible_templates(user: Optional[User]) -> QuerySet:
    """System templates plus the user's own."""
    visible = Q(created_by__isnull=True)
    if user:
        visible |= Q(created_by=user)
    return ProposalTemplate.objects.filter(visible)


def list_templates(user: Optional[User], trade_id: Optional[str] = None) -> Tuple[List[dict], int]:
    """
    Active templates grouped by trade, most used first.

    Returns (groups, total) where each group is
    {trade_id, trade_name, job_types: [ProposalTemplate, ...]}.
    """
    templates = _visible_templates(user).filter(is_active=True)
    if trade_id:
        templates = templates.filter(trade_id=trade_id)
    templates = templates.order_by('-usage_count', 'trade_name', 'job_type_name')

    groups = {}
    total = 0
    for template in templates:
        group = groups.setdefault(template.trade_id, {
            'trade_id': template.trade_id,
            'trade_name': template.trade_name,
            'job_types': [],
        })
        group['job_types'].append(template)
        total += 1
    return list(groups.values()), total


def get_template(user: Optional[User], template_id: int) -> ProposalTemplate:
    template = _visible_templates(user).filter(id=template_id).first()
    if not template:
        raise TemplateNotFound()
    return template


def create_template(user: User, data: dict) -> ProposalTemplate:
    _check_price_range(data.get('base_price_low'), data.get('base_price_high'))
    template = ProposalTemplate.objects.create(created_by=user, is_default=False, **data)
    logger.info("Template %s created by user %s", template.id, user.id)
    return template


def update_template(user: User, template_id: int, data: dict) -> ProposalTemplate:
    template = ProposalTemplate.objects.filter(id=template_id, created_by=user).first()
    if not template:
        raise TemplateNotFound("Template not found or you do not have permission to edit it")
    for key, value in data.items():
        setattr(template, key, value)
    _check_price_range(template.base_price_low, template.base_price_high)
    template.save()
    return template


def delete_template(user: User, template_id: int) -> None:
    deleted, _ = ProposalTemplate.objects.filter(id=template_id, created_by=user).delete()
    if not deleted:
        raise TemplateNotFound("Template not found or you do not have permission to delete it")


def record_template_usage(template_id: int) -> None:
    updated = ProposalTemplate.objects.filter(id=template_id).update(usage_count=F('usage_count') + 1)
    if not updated:
        raise TemplateNotFound()


# =============================================================================
# Server-side drafts
# =============================================================================

def _draft_key(user: Optional[User]) -> str:
    return draft_persistence.get_draft_storage_key(str(user.id) if user else None)


def load_server_draft(user: Optional[User]) -> draft_persistence.DeserializeResult:
    record = ProposalDraftRecord.objects.filter(storage_key=_draft_key(user)).first()
    return draft_persistence.deserialize_draft(record.payload if record else None)


def save_server_draft(user: Optional[User], draft: dict) -> Optional[int]:
    """
    Persist a draft. Drafts without content clear the stored record and
    return None; otherwise the saved timestamp (ms) is returned.
    """
    if not draft_persistence.validate_draft_structure(draft):
        raise ProposalError("Invalid draft structure")

    key = _draft_key(user)
    if not draft_persistence.draft_has_content(draft):
        ProposalDraftRecord.objects.filter(storage_key=key).delete()
        return None

    payload = draft_persistence.serialize_draft(draft)
    ProposalDraftRecord.objects.update_or_create(
        storage_key=key,
        defaults={'user': user, 'payload': payload},
    )
    return draft_persistence.deserialize_draft(payload).timestamp


def clear_server_draft(user: Optional[User]) -> bool:
    deleted, _ = ProposalDraftRecord.objects.filter(storage_key=_draft_key(user)).delete()
    return bool(deleted)
