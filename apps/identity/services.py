"""Services for Identity app."""
import logging
from typing import List, Optional

from django.db import transaction
from django.db.models import F, Q

from apps.governance.audit_service import AuditAction, log_action

from .dtos import UserDTO
from .entitlements import (
    ALL_ENTITLEMENTS,
    EntitlementContext,
    check_crew_entitlement,
    get_dev_override_description,
    get_user_entitlements,
)
from .models import User, UserRole

logger = logging.getLogger(__name__)


def to_user_dto(user: User) -> UserDTO:
    crew = check_crew_entitlement(EntitlementContext.for_user(user))
    return UserDTO(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        subscription_plan=user.subscription_plan,
        proposal_credits=user.proposal_credits,
        entitlements=get_user_entitlements(user),
        company_name=user.company_name,
        crew_dev_override=get_dev_override_description(crew),
    )


def get_user_dto(user_id) -> Optional[UserDTO]:
    user = User.objects.filter(id=user_id).first()
    return to_user_dto(user) if user else None


def update_profile(user: User, data: dict) -> UserDTO:
    for key, value in data.items():
        if value is not None:
            setattr(user, key, value)
    user.save()
    return to_user_dto(user)


def list_users(search: Optional[str] = None, limit: int = 100) -> List[UserDTO]:
    qs = User.objects.all()
    if search:
        qs = qs.filter(Q(email__icontains=search) | Q(username__icontains=search))
    return [to_user_dto(u) for u in qs[:limit]]


def grant_entitlement(actor: User, target: User, entitlement: str, reason: Optional[str] = None) -> UserDTO:
    """
    Grant a named entitlement. Granting one the user already holds is a no-op
    and is not audited.
    """
    if entitlement not in ALL_ENTITLEMENTS:
        raise ValueError(f"Unknown entitlement: {entitlement}")

    current = list(target.entitlements or [])
    if entitlement not in current:
        target.entitlements = current + [entitlement]
        target.save(update_fields=['entitlements'])
        log_action(
            actor=actor,
            action=AuditAction.GRANT_ENTITLEMENT,
            resource_type="entitlement",
            resource_value=entitlement,
            target_user=target,
            previous_value=False,
            new_value=True,
            metadata={"reason": reason} if reason else None,
        )
        logger.info("Entitlement %s granted to user %s", entitlement, target.id)
    return to_user_dto(target)


def revoke_entitlement(actor: User, target: User, entitlement: str, reason: Optional[str] = None) -> UserDTO:
    if entitlement not in ALL_ENTITLEMENTS:
        raise ValueError(f"Unknown entitlement: {entitlement}")

    current = list(target.entitlements or [])
    if entitlement in current:
        target.entitlements = [e for e in current if e != entitlement]
        target.save(update_fields=['entitlements'])
        log_action(
            actor=actor,
            action=AuditAction.REVOKE_ENTITLEMENT,
            resource_type="entitlement",
            resource_value=entitlement,
            target_user=target,
            previous_value=True,
            new_value=False,
            metadata={"reason": reason} if reason else None,
        )
        logger.info("Entitlement %s revoked from user %s", entitlement, target.id)
    return to_user_dto(target)


def grant_credits(actor: User, target: User, amount: int, expires_at=None, reason: Optional[str] = None) -> UserDTO:
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    with transaction.atomic():
        previous = target.proposal_credits
        update = {'proposal_credits': F('proposal_credits') + amount}
        if expires_at is not None:
            update['credits_expire_at'] = expires_at
        User.objects.filter(id=target.id).update(**update)
        target.refresh_from_db()

    log_action(
        actor=actor,
        action=AuditAction.GRANT_CREDITS,
        resource_type="proposal_credits",
        resource_value=str(amount),
        target_user=target,
        previous_value=previous,
        new_value=target.proposal_credits,
        metadata={"reason": reason} if reason else None,
    )
    return to_user_dto(target)


def change_role(actor: User, target: User, role: str) -> UserDTO:
    if role not in UserRole.values:
        raise ValueError(f"Unknown role: {role}")
    if actor.id == target.id:
        raise ValueError("You cannot change your own role")

    previous = target.role
    if previous != role:
        target.role = role
        target.save(update_fields=['role'])
        log_action(
            actor=actor,
            action=AuditAction.CHANGE_ROLE,
            resource_type="role",
            resource_value=role,
            target_user=target,
            previous_value=previous,
            new_value=role,
        )
    return to_user_dto(target)
