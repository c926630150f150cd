"""
Public proposal endpoints, addressed by the proposal's public token.
No authentication: possession of the link is the credential.
"""
from django.http import HttpRequest
from ninja import Router
from ninja.responses import codes_4xx

from . import services
from .dtos import (
    AcceptIn,
    AcceptOut,
    CompanyInfoOut,
    MessageOut,
    PhotoOut,
    PublicProposalOut,
    PublicProposalResponse,
)
from .pricing import calculate_total_price

router = Router(tags=["Public Proposals"])


def _client_ip(request: HttpRequest) -> str:
    forwarded = request.headers.get('x-forwarded-for', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


@router.get("/{token}", response={200: PublicProposalResponse, codes_4xx: MessageOut}, auth=None)
def view_proposal(request: HttpRequest, token: str):
    try:
        proposal = services.view_public_proposal(
            token,
            viewer_ip=_client_ip(request),
            user_agent=request.headers.get('user-agent', ''),
        )
    except services.ProposalError as e:
        return e.status, MessageOut(message=e.message)

    owner = proposal.owner
    return 200, PublicProposalResponse(
        proposal=PublicProposalOut(
            id=proposal.id,
            client_name=proposal.client_name,
            address=proposal.address,
            job_type_name=proposal.job_type_name,
            scope=proposal.scope or [],
            price_low=proposal.price_low,
            price_high=proposal.price_high,
            total_price=calculate_total_price(proposal),
            options=proposal.options or {},
            line_items=proposal.line_items,
            status=proposal.status,
            accepted_at=proposal.accepted_at,
            accepted_by_name=proposal.accepted_by_name,
            accepted_by_email=proposal.accepted_by_email,
            signature=proposal.signature,
            contractor_signature=proposal.contractor_signature,
            contractor_signed_at=proposal.contractor_signed_at,
            photos=[PhotoOut.from_orm(photo) for photo in proposal.photos.all()],
        ),
        company_info=CompanyInfoOut(
            company_name=owner.company_name,
            company_address=owner.company_address,
            company_phone=owner.company_phone,
            company_logo=owner.company_logo,
        ),
    )


@router.post("/{token}/accept", response={200: AcceptOut, codes_4xx: MessageOut}, auth=None)
def accept_proposal(request: HttpRequest, token: str, payload: AcceptIn):
    try:
        services.accept_proposal(token, payload.name, payload.email, payload.signature)
    except services.ProposalError as e:
        return e.status, MessageOut(message=e.message)
    return 200, AcceptOut(success=True, message="Proposal accepted successfully")
