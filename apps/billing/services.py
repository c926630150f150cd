"""Billing status and proposal credit accounting."""
import logging
from typing import Optional

from django.db.models import F
from django.utils import timezone

from apps.identity.models import User
from .dtos import BillingStatusDTO
from .models import Subscription

logger = logging.getLogger(__name__)


def get_latest_subscription(user: User) -> Optional[Subscription]:
    return Subscription.objects.filter(user=user).order_by('-created_at').first()


def get_effective_credits(user: User, now=None) -> int:
    """Credits past their expiry date count as zero."""
    now = now or timezone.now()
    if user.credits_expire_at and user.credits_expire_at < now:
        return 0
    return user.proposal_credits


def is_trial_active(user: User, now=None) -> bool:
    now = now or timezone.now()
    return bool(user.trial_ends_at and user.trial_ends_at > now)


def get_billing_status(user: User) -> BillingStatusDTO:
    now = timezone.now()
    subscription = get_latest_subscription(user)
    credits = get_effective_credits(user, now)
    has_active = bool(subscription and subscription.is_active)

    return BillingStatusDTO(
        plan=(subscription.plan if subscription else None) or user.subscription_plan or 'free',
        status=subscription.status if subscription else 'none',
        proposal_credits=credits,
        credits_expire_at=user.credits_expire_at,
        has_active_subscription=has_active,
        can_access_premium_features=has_active or credits > 0 or is_trial_active(user, now),
        trial_ends_at=user.trial_ends_at,
        current_period_end=subscription.current_period_end if subscription else None,
        cancel_at_period_end=subscription.cancel_at_period_end if subscription else False,
    )


def has_active_subscription(user: User) -> bool:
    subscription = get_latest_subscription(user)
    return bool(subscription and subscription.is_active)


def deduct_proposal_credit(user: User) -> bool:
    """
    Atomically take one credit. Returns False when the user has none to
    spend (including expired credits).
    """
    if get_effective_credits(user) <= 0:
        return False

    updated = User.objects.filter(id=user.id, proposal_credits__gt=0).update(
        proposal_credits=F('proposal_credits') - 1
    )
    if updated:
        user.refresh_from_db(fields=['proposal_credits'])
        logger.info("Deducted proposal credit from user %s (%s left)", user.id, user.proposal_credits)
    return bool(updated)
