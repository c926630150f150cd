"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
from typing import Optional, List

from ninja import Schema


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    username: str
    email: str
    role: str
    is_active: bool
    subscription_plan: str
    proposal_credits: int
    entitlements: List[str]
    company_name: str = ""
    crew_dev_override: Optional[str] = None


class LoginSchema(Schema):
    username: str
    password: str


class TokenResponse(Schema):
    success: bool
    user: Optional[UserDTO] = None
    message: Optional[str] = None


class ProfileUpdate(Schema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_phone: Optional[str] = None
    company_logo: Optional[str] = None
    license_number: Optional[str] = None
    email_notifications_enabled: Optional[bool] = None


class EntitlementChangeIn(Schema):
    entitlement: str
    reason: Optional[str] = None


class CreditGrantIn(Schema):
    amount: int
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class RoleChangeIn(Schema):
    role: str
