"""
Proposal templates: shared system templates plus each contractor's own.

Listing and reading work without a session (system templates only);
creating, editing, deleting and usage tracking require one.
"""
from typing import Optional

from django.http import HttpRequest
from ninja import Router
from ninja.responses import codes_4xx

from apps.identity.security import get_current_user, require_auth
from . import services
from .dtos import (
    MessageOut,
    TemplateIn,
    TemplateListOut,
    TemplateOut,
    TemplateUpdate,
)

router = Router(tags=["Templates"])


def _error(e: services.ProposalError):
    return e.status, MessageOut(message=e.message)


@router.get("", response=TemplateListOut, auth=None)
def list_templates(request: HttpRequest, tradeId: Optional[str] = None):
    groups, total = services.list_templates(get_current_user(request), trade_id=tradeId)
    return {"templates": groups, "total": total}


@router.post("", response={201: TemplateOut, codes_4xx: MessageOut}, auth=None)
def create_template(request: HttpRequest, payload: TemplateIn):
    user = require_auth(request)
    try:
        return 201, services.create_template(user, payload.dict())
    except services.ProposalError as e:
        return _error(e)


@router.get("/{template_id}", response={200: TemplateOut, codes_4xx: MessageOut}, auth=None)
def get_template(request: HttpRequest, template_id: int):
    try:
        return 200, services.get_template(get_current_user(request), template_id)
    except services.ProposalError as e:
        return _error(e)


@router.patch("/{template_id}", response={200: TemplateOut, codes_4xx: MessageOut}, auth=None)
def update_template(request: HttpRequest, template_id: int, payload: TemplateUpdate):
    user = require_auth(request)
    try:
        return 200, services.update_template(
            user, template_id, payload.dict(exclude_unset=True, exclude_none=True)
        )
    except services.ProposalError as e:
        return _error(e)


@router.delete("/{template_id}", response={200: MessageOut, codes_4xx: MessageOut}, auth=None)
def delete_template(request: HttpRequest, template_id: int):
    user = require_auth(request)
    try:
        services.delete_template(user, template_id)
    except services.ProposalError as e:
        return _error(e)
    return 200, MessageOut(message="Template deleted successfully")


@router.post("/{template_id}/use", response={200: MessageOut, codes_4xx: MessageOut}, auth=None)
def use_template(request: HttpRequest, template_id: int):
    """Count one use of a template; list order follows usage."""
    require_auth(request)
    try:
        services.record_template_usage(template_id)
    except services.ProposalError as e:
        return _error(e)
    return 200, MessageOut(message="Usage tracked")
