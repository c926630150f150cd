"""Schemas for the Proposals app."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ninja import Schema
from ninja.orm import create_schema

from .models import Proposal, ProposalPhoto

ProposalOut = create_schema(
    Proposal,
    name='ProposalOut',
    fields=[
        'id', 'client_name', 'address', 'trade_id', 'job_type_id', 'job_type_name',
        'job_size', 'scope', 'options', 'price_low', 'price_high', 'line_items',
        'is_multi_service', 'estimated_days_low', 'estimated_days_high', 'status',
        'is_unlocked', 'public_token', 'accepted_at', 'accepted_by_name',
        'accepted_by_email', 'contractor_signed_at', 'created_at', 'updated_at',
    ]
)

PhotoOut = create_schema(
    ProposalPhoto,
    name='ProposalPhotoOut',
    fields=['id', 'url', 'category', 'caption', 'display_order', 'file_name', 'file_type', 'file_size', 'created_at']
)


class ProposalListItemOut(ProposalOut):
    view_count: int = 0
    last_viewed_at: Optional[datetime] = None


class ProposalIn(Schema):
    client_name: str
    address: str
    trade_id: str
    job_type_id: str
    job_type_name: str
    job_size: int = 2
    scope: List[str] = []
    options: Dict[str, Any] = {}
    price_low: int
    price_high: int
    line_items: Optional[List[Dict[str, Any]]] = None
    estimated_days_low: Optional[int] = None
    estimated_days_high: Optional[int] = None


class ProposalUpdate(Schema):
    client_name: Optional[str] = None
    address: Optional[str] = None
    job_type_name: Optional[str] = None
    job_size: Optional[int] = None
    scope: Optional[List[str]] = None
    options: Optional[Dict[str, Any]] = None
    price_low: Optional[int] = None
    price_high: Optional[int] = None
    line_items: Optional[List[Dict[str, Any]]] = None
    estimated_days_low: Optional[int] = None
    estimated_days_high: Optional[int] = None
    status: Optional[str] = None


class PhotoUpdate(Schema):
    category: Optional[str] = None
    caption: Optional[str] = None
    display_order: Optional[int] = None


class UnlockOut(Schema):
    proposal: ProposalOut
    remaining_credits: int
    credit_deducted: bool


class SendEmailIn(Schema):
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None


class SendEmailOut(Schema):
    success: bool
    task_id: str
    public_url: Optional[str] = None
    sent_at: datetime


class CountersignIn(Schema):
    signature: Optional[str] = None


class CountersignOut(Schema):
    message: str
    contractor_signed_at: datetime


class ErrorOut(Schema):
    message: str
    requires_payment: Optional[bool] = None
    no_credits: Optional[bool] = None
    requires_upgrade: Optional[bool] = None
    requires_unlock: Optional[bool] = None


class PublicProposalOut(Schema):
    id: int
    client_name: str
    address: str
    job_type_name: str
    scope: List[str]
    price_low: int
    price_high: int
    total_price: int
    options: Dict[str, Any]
    line_items: Optional[List[Dict[str, Any]]] = None
    status: str
    accepted_at: Optional[datetime] = None
    accepted_by_name: str
    accepted_by_email: str
    signature: str
    contractor_signature: str
    contractor_signed_at: Optional[datetime] = None
    photos: List[PhotoOut] = []


class CompanyInfoOut(Schema):
    company_name: str
    company_address: str
    company_phone: str
    company_logo: str


class PublicProposalResponse(Schema):
    proposal: PublicProposalOut
    company_info: Optional[CompanyInfoOut] = None


class AcceptIn(Schema):
    name: Optional[str] = None
    email: Optional[str] = None
    signature: Optional[str] = None


class AcceptOut(Schema):
    success: bool
    message: str


class DraftOut(Schema):
    draft: Optional[Dict[str, Any]] = None
    timestamp: Optional[int] = None
    saved_ago: Optional[str] = None


class DraftSavedOut(Schema):
    saved: bool
    timestamp: Optional[int] = None


class DraftIn(Schema):
    draft: Dict[str, Any]


class MessageOut(Schema):
    message: str


class DashboardStatsOut(Schema):
    proposal_credits: int
    credits_expire_at: Optional[datetime] = None
    total_proposals: int
    pending: int
    accepted: int
    won: int
    revenue_won: int


class TemplateIn(Schema):
    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: List[str]
    options: List[Dict[str, Any]]
    base_price_low: int
    base_price_high: int
    estimated_days_low: Optional[int] = None
    estimated_days_high: Optional[int] = None
    warranty: str = ""
    exclusions: Optional[List[str]] = None
    is_active: bool = True


class TemplateUpdate(Schema):
    trade_name: Optional[str] = None
    job_type_name: Optional[str] = None
    base_scope: Optional[List[str]] = None
    options: Optional[List[Dict[str, Any]]] = None
    base_price_low: Optional[int] = None
    base_price_high: Optional[int] = None
    estimated_days_low: Optional[int] = None
    estimated_days_high: Optional[int] = None
    warranty: Optional[str] = None
    exclusions: Optional[List[str]] = None
    is_active: Optional[bool] = None


class TemplateOut(Schema):
    id: int
    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: List[str]
    options: List[Dict[str, Any]]
    base_price_low: int
    base_price_high: int
    estimated_days_low: Optional[int] = None
    estimated_days_high: Optional[int] = None
    warranty: str
    exclusions: Optional[List[str]] = None
    is_default: bool
    is_custom: bool
    is_active: bool
    usage_count: int


class TemplateGroupOut(Schema):
    trade_id: str
    trade_name: str
    job_types: List[TemplateOut]


class TemplateListOut(Schema):
    templates: List[TemplateGroupOut]
    total: int
