"""
Centralized audit logging service.

Use log_action() to record any admin or contract-relevant mutation. It is
fire-and-forget: it will never raise, so a logging failure will never
break the calling request.

Usage:
    from apps.governance.audit_service import log_action, AuditAction

    log_action(
        actor=request.user,
        action=AuditAction.GRANT_ENTITLEMENT,
        resource_type="entitlement",
        resource_value="CREW_ACCESS",
        target_user=target,
        previous_value="false",
        new_value="true",
    )
"""
import logging
from typing import Any, Optional

from .models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """
    Canonical string constants for audit log actions.
    Prevents scattered string literals and typos across apps.
    """
    # ── Identity ──────────────────────────────────────────────────────
    GRANT_ENTITLEMENT = "GRANT_ENTITLEMENT"
    REVOKE_ENTITLEMENT = "REVOKE_ENTITLEMENT"
    GRANT_CREDITS = "GRANT_CREDITS"
    CHANGE_ROLE = "CHANGE_ROLE"

    # ── Proposals ─────────────────────────────────────────────────────
    ACCEPT_PROPOSAL = "ACCEPT_PROPOSAL"
    COUNTERSIGN_PROPOSAL = "COUNTERSIGN_PROPOSAL"
    UNLOCK_PROPOSAL = "UNLOCK_PROPOSAL"


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def log_action(
    *,
    action: str,
    resource_type: str,
    actor=None,
    target_user=None,
    resource_value: str = "",
    previous_value: Any = None,
    new_value: Any = None,
    metadata: Optional[dict] = None,
) -> Optional[AuditLog]:
    """
    Create an AuditLog entry.

    Never raises: DB or serialization errors are logged and swallowed so
    audit logging never degrades the user-facing request.

    Args:
        action:          Action constant from AuditAction.
        resource_type:   Kind of object acted on (e.g. "entitlement").
        actor:           User performing the action, or None for public/system actions.
        target_user:     User affected by the action, if any.
        resource_value:  Identifier of the object acted on.
        previous_value:  Value before the change (stringified).
        new_value:       Value after the change (stringified).
        metadata:        Optional dict of additional context stored as JSON.

    Returns:
        The created AuditLog instance, or None if creation failed.
    """
    try:
        return AuditLog.objects.create(
            actor=actor,
            actor_email=getattr(actor, 'email', '') or '',
            target_user_id=getattr(target_user, 'id', None),
            target_user_email=getattr(target_user, 'email', '') or '',
            action=action,
            resource_type=resource_type,
            resource_value=str(resource_value or ''),
            previous_value=_as_text(previous_value),
            new_value=_as_text(new_value),
            metadata=metadata or {},
        )
    except Exception:
        logger.exception("Failed to write audit log entry for %s", action)
        return None
