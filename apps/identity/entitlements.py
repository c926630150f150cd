"""
Entitlements - server-side single source of truth for feature access.

An entitlement is a named flag granted to a user independent of their
subscription tier. Crew access is special: it can come from the Crew
subscription, from an explicit grant, or (outside production only) from the
DEV_CREW_EMAILS / DEV_FORCE_CREW overrides.
"""
import os
from dataclasses import dataclass
from typing import List, Optional, Set

from django.conf import settings

from .models import User, UserRole, SubscriptionPlan


class Entitlement:
    CREW_ACCESS = "CREW_ACCESS"
    CREW_PAYOUT = "CREW_PAYOUT"
    ADMIN_USERS = "ADMIN_USERS"
    SEARCH_CONSOLE = "SEARCH_CONSOLE"


ALL_ENTITLEMENTS: List[str] = [
    Entitlement.CREW_ACCESS,
    Entitlement.CREW_PAYOUT,
    Entitlement.ADMIN_USERS,
    Entitlement.SEARCH_CONSOLE,
]


class CrewAccessReason:
    SUBSCRIPTION = "subscription"
    ENTITLEMENT = "entitlement"
    DEV_EMAIL_ALLOWLIST = "dev_email_allowlist"
    DEV_FORCE_FLAG = "dev_force_flag"
    NONE = "none"


@dataclass(frozen=True)
class EntitlementContext:
    user_id: str
    email: Optional[str] = None
    subscription_plan: Optional[str] = None
    entitlements: tuple = ()

    @classmethod
    def for_user(cls, user: User) -> "EntitlementContext":
        return cls(
            user_id=str(user.id),
            email=user.email,
            subscription_plan=user.subscription_plan,
            entitlements=tuple(user.entitlements or ()),
        )


@dataclass(frozen=True)
class CrewEntitlementResult:
    has_crew_access: bool
    is_dev_override: bool
    reason: str


def is_production_environment() -> bool:
    """Dev overrides must never apply when this returns True."""
    return getattr(settings, 'APP_ENV', 'development') == 'production'


def get_dev_crew_email_allowlist() -> Set[str]:
    """Parse DEV_CREW_EMAILS into a set of lowercase addresses."""
    raw = os.getenv('DEV_CREW_EMAILS', '')
    if not raw.strip():
        return set()
    emails = (email.strip().lower() for email in raw.split(','))
    return {email for email in emails if email and '@' in email}


def is_dev_force_crew_enabled() -> bool:
    return os.getenv('DEV_FORCE_CREW') == 'true'


def is_email_in_dev_allowlist(email: Optional[str]) -> bool:
    if not email:
        return False
    return email.lower() in get_dev_crew_email_allowlist()


def check_crew_entitlement(context: EntitlementContext) -> CrewEntitlementResult:
    """
    Decide whether a user has Crew access.

    Order of checks:
    1. 'crew' subscription plan
    2. Explicit CREW_ACCESS grant
    3. DEV_CREW_EMAILS allowlist (non-production only)
    4. DEV_FORCE_CREW=true (non-production only)
    """
    if context.subscription_plan == SubscriptionPlan.CREW:
        return CrewEntitlementResult(True, False, CrewAccessReason.SUBSCRIPTION)

    if Entitlement.CREW_ACCESS in context.entitlements:
        return CrewEntitlementResult(True, False, CrewAccessReason.ENTITLEMENT)

    if is_production_environment():
        return CrewEntitlementResult(False, False, CrewAccessReason.NONE)

    if is_email_in_dev_allowlist(context.email):
        return CrewEntitlementResult(True, True, CrewAccessReason.DEV_EMAIL_ALLOWLIST)

    if is_dev_force_crew_enabled():
        return CrewEntitlementResult(True, True, CrewAccessReason.DEV_FORCE_FLAG)

    return CrewEntitlementResult(False, False, CrewAccessReason.NONE)


def has_crew_access(context: EntitlementContext) -> bool:
    return check_crew_entitlement(context).has_crew_access


def get_dev_override_description(result: CrewEntitlementResult) -> Optional[str]:
    """Label for the dev badge shown when access comes from an override."""
    if not result.is_dev_override:
        return None
    if result.reason == CrewAccessReason.DEV_EMAIL_ALLOWLIST:
        return "Dev: Email Allowlist"
    if result.reason == CrewAccessReason.DEV_FORCE_FLAG:
        return "Dev: Force Flag"
    return None


def has_entitlement(user: User, entitlement: str) -> bool:
    """
    Check a single entitlement for a user.

    Platform admins implicitly hold ADMIN_USERS.
    """
    if not user or not user.is_active:
        return False
    if entitlement == Entitlement.CREW_ACCESS:
        return has_crew_access(EntitlementContext.for_user(user))
    if entitlement == Entitlement.ADMIN_USERS and user.role == UserRole.ADMIN:
        return True
    return entitlement in (user.entitlements or [])


def get_user_entitlements(user: User) -> List[str]:
    """Return every entitlement the user currently holds, in canonical order."""
    return [e for e in ALL_ENTITLEMENTS if has_entitlement(user, e)]
