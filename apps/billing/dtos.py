from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ninja import Schema


@dataclass(frozen=True)
class BillingStatusDTO:
    plan: str
    status: str
    proposal_credits: int
    credits_expire_at: Optional[datetime]
    has_active_subscription: bool
    can_access_premium_features: bool
    trial_ends_at: Optional[datetime]
    current_period_end: Optional[datetime]
    cancel_at_period_end: bool


class BillingStatusOut(Schema):
    plan: str
    status: str
    proposal_credits: int
    credits_expire_at: Optional[datetime] = None
    has_active_subscription: bool
    can_access_premium_features: bool
    trial_ends_at: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool
