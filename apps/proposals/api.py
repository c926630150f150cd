"""
Proposals API: authenticated contractor endpoints.

Service-layer ProposalError subclasses carry their HTTP status; they are
turned into ErrorOut bodies here.
"""
from typing import List
from uuid import UUID

from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja import File, Form, Router
from ninja.errors import HttpError
from ninja.files import UploadedFile
from ninja.responses import codes_4xx

from apps.identity.security import require_auth
from . import draft_persistence, photo_service, services
from .dtos import (
    CountersignIn,
    CountersignOut,
    DraftIn,
    DraftOut,
    DraftSavedOut,
    ErrorOut,
    PhotoOut,
    PhotoUpdate,
    ProposalIn,
    ProposalListItemOut,
    ProposalOut,
    ProposalUpdate,
    SendEmailIn,
    SendEmailOut,
    UnlockOut,
)
from .models import PhotoCategory, ProposalPhoto

router = Router(tags=["Proposals"])


def _error(e: services.ProposalError):
    return e.status, ErrorOut(message=e.message, **e.extra)


# =============================================================================
# Server-side drafts
# =============================================================================

@router.get("/drafts/current", response=DraftOut, auth=None)
def get_current_draft(request: HttpRequest):
    """Restore the saved draft, migrated to the current schema. Empty when none or unreadable."""
    user = require_auth(request)
    result = services.load_server_draft(user)
    if not result.success:
        return DraftOut()
    return DraftOut(
        draft=result.draft,
        timestamp=result.timestamp,
        saved_ago=draft_persistence.format_relative_time(result.timestamp),
    )


@router.put("/drafts/current", response={200: DraftSavedOut, codes_4xx: ErrorOut}, auth=None)
def save_current_draft(request: HttpRequest, payload: DraftIn):
    user = require_auth(request)
    try:
        timestamp = services.save_server_draft(user, payload.draft)
    except services.ProposalError as e:
        return _error(e)
    return 200, DraftSavedOut(saved=timestamp is not None, timestamp=timestamp)


@router.delete("/drafts/current", response={204: None}, auth=None)
def delete_current_draft(request: HttpRequest):
    user = require_auth(request)
    services.clear_server_draft(user)
    return 204, None


# =============================================================================
# CRUD
# =============================================================================

@router.post("", response={201: ProposalOut, codes_4xx: ErrorOut}, auth=None)
def create_proposal(request: HttpRequest, payload: ProposalIn):
    user = require_auth(request)
    try:
        return 201, services.create_proposal(user, payload.dict())
    except services.ProposalError as e:
        return _error(e)


@router.get("", response=List[ProposalListItemOut], auth=None)
def list_proposals(request: HttpRequest):
    """List the caller's proposals with view counts, newest first."""
    user = require_auth(request)
    return list(services.list_proposals(user))


@router.get("/{proposal_id}", response={200: ProposalOut, codes_4xx: ErrorOut}, auth=None)
def get_proposal(request: HttpRequest, proposal_id: int):
    user = require_auth(request)
    try:
        return 200, services.get_owned_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)


@router.patch("/{proposal_id}", response={200: ProposalOut, codes_4xx: ErrorOut}, auth=None)
def update_proposal(request: HttpRequest, proposal_id: int, payload: ProposalUpdate):
    user = require_auth(request)
    try:
        return 200, services.update_proposal(user, proposal_id, payload.dict(exclude_unset=True))
    except services.ProposalError as e:
        return _error(e)


@router.delete("/{proposal_id}", response={204: None, codes_4xx: ErrorOut}, auth=None)
def delete_proposal(request: HttpRequest, proposal_id: int):
    user = require_auth(request)
    try:
        services.delete_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    return 204, None


# =============================================================================
# Unlock, send, countersign
# =============================================================================

@router.post("/{proposal_id}/unlock", response={200: UnlockOut, codes_4xx: ErrorOut}, auth=None)
def unlock_proposal(request: HttpRequest, proposal_id: int):
    user = require_auth(request)
    try:
        result = services.unlock_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    return 200, UnlockOut(
        proposal=ProposalOut.from_orm(result.proposal),
        remaining_credits=result.remaining_credits,
        credit_deducted=result.credit_deducted,
    )


@router.post("/{proposal_id}/email", response={200: SendEmailOut, codes_4xx: ErrorOut}, auth=None)
def email_proposal(request: HttpRequest, proposal_id: int, payload: SendEmailIn):
    """Queue the proposal email and mark the proposal as sent."""
    user = require_auth(request)
    try:
        result = services.send_proposal(
            user,
            proposal_id,
            recipient_email=payload.recipient_email,
            recipient_name=payload.recipient_name,
            message=payload.message,
        )
    except services.ProposalError as e:
        return _error(e)
    return 200, SendEmailOut(
        success=True,
        task_id=result.task_id,
        public_url=result.public_url,
        sent_at=result.sent_at,
    )


@router.post("/{proposal_id}/countersign", response={200: CountersignOut, codes_4xx: ErrorOut}, auth=None)
def countersign_proposal(request: HttpRequest, proposal_id: int, payload: CountersignIn):
    user = require_auth(request)
    try:
        proposal = services.countersign_proposal(user, proposal_id, payload.signature)
    except services.ProposalError as e:
        return _error(e)
    return 200, CountersignOut(
        message="Proposal countersigned successfully",
        contractor_signed_at=proposal.contractor_signed_at,
    )


# =============================================================================
# Photos
# =============================================================================

@router.post("/{proposal_id}/photos", response={201: PhotoOut, codes_4xx: ErrorOut}, auth=None)
def upload_photo(
    request: HttpRequest,
    proposal_id: int,
    file: UploadedFile = File(...),
    category: str = Form(PhotoCategory.OTHER.value),
    caption: str = Form(""),
):
    """Upload a photo for a proposal."""
    user = require_auth(request)
    try:
        proposal = services.get_owned_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    try:
        return 201, photo_service.upload_proposal_photo(file, proposal, category=category, caption=caption)
    except ValueError as e:
        raise HttpError(400, str(e))


@router.get("/{proposal_id}/photos", response={200: List[PhotoOut], codes_4xx: ErrorOut}, auth=None)
def list_photos(request: HttpRequest, proposal_id: int):
    user = require_auth(request)
    try:
        proposal = services.get_owned_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    return 200, photo_service.list_photos(proposal)


@router.patch("/{proposal_id}/photos/{photo_id}", response={200: PhotoOut, codes_4xx: ErrorOut}, auth=None)
def update_photo(request: HttpRequest, proposal_id: int, photo_id: UUID, payload: PhotoUpdate):
    user = require_auth(request)
    try:
        proposal = services.get_owned_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    photo = get_object_or_404(ProposalPhoto, id=photo_id, proposal=proposal)
    try:
        return 200, photo_service.update_photo(photo, payload.dict(exclude_unset=True))
    except ValueError as e:
        raise HttpError(400, str(e))


@router.delete("/{proposal_id}/photos/{photo_id}", response={204: None, codes_4xx: ErrorOut}, auth=None)
def delete_photo(request: HttpRequest, proposal_id: int, photo_id: UUID):
    user = require_auth(request)
    try:
        proposal = services.get_owned_proposal(user, proposal_id)
    except services.ProposalError as e:
        return _error(e)
    photo = get_object_or_404(ProposalPhoto, id=photo_id, proposal=proposal)
    photo_service.delete_photo(photo)
    return 204, None
