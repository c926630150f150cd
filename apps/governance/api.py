from typing import List, Optional
from uuid import UUID
from datetime import date

from django.shortcuts import get_object_or_404
from ninja import Router

from apps.identity.entitlements import Entitlement
from apps.identity.security import require_entitlement
from .models import AuditLog
from .dtos import AuditLogOut

router = Router(tags=["Governance"])


@router.get("/audit-logs", response=List[AuditLogOut], auth=None)
def list_audit_logs(
    request,
    action: Optional[str] = None,
    target_user_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 100,
):
    """
    List audit log entries, newest first.
    Requires ADMIN_USERS. Supports filtering by action, target user and
    date range.
    """
    require_entitlement(request, Entitlement.ADMIN_USERS)

    qs = AuditLog.objects.all()

    if action:
        qs = qs.filter(action=action)
    if target_user_id:
        qs = qs.filter(target_user_id=target_user_id)
    if start_date:
        qs = qs.filter(created_at__date__gte=start_date)
    if end_date:
        qs = qs.filter(created_at__date__lte=end_date)

    return list(qs[:max(1, min(limit, 500))])  # cap at 500


@router.get("/audit-logs/{log_id}", response=AuditLogOut, auth=None)
def get_audit_log(request, log_id: UUID):
    require_entitlement(request, Entitlement.ADMIN_USERS)
    return get_object_or_404(AuditLog, id=log_id)
