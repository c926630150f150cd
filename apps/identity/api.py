"""
Identity API endpoints with JWT authentication.

Provides login, logout, token refresh, profile, and admin entitlement
management endpoints. Uses JWT tokens in httpOnly cookies for stateless
authentication.
"""
from typing import List, Optional
from uuid import UUID

from django.contrib.auth import authenticate
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404
from ninja import Router
from ninja.errors import HttpError

from .decorators import entitlement_required
from .dtos import (
    CreditGrantIn,
    EntitlementChangeIn,
    LoginSchema,
    ProfileUpdate,
    RoleChangeIn,
    TokenResponse,
    UserDTO,
)
from .entitlements import Entitlement
from .jwt_auth import (
    ACCESS_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    create_access_token,
    create_token_pair,
    get_access_token_cookie_settings,
    get_refresh_token_cookie_settings,
    get_user_id_from_token,
)
from .models import User
from .security import is_production, require_auth
from . import services

router = Router(tags=["Identity"])


def _json_response(data: TokenResponse) -> HttpResponse:
    return HttpResponse(data.model_dump_json(), content_type='application/json')


# =============================================================================
# Auth Endpoints
# =============================================================================

@router.post("/login", response=TokenResponse, auth=None)
def login_user(request: HttpRequest, payload: LoginSchema):
    """
    Authenticate user and set JWT tokens in httpOnly cookies.
    """
    user = authenticate(request, username=payload.username, password=payload.password)

    if user is None:
        raise HttpError(401, "Invalid username or password")

    if not user.is_active:
        raise HttpError(401, "Account is disabled")

    access_token, refresh_token = create_token_pair(user.id, user.role)

    response = _json_response(TokenResponse(success=True, user=services.to_user_dto(user)))

    prod = is_production()
    response.set_cookie(ACCESS_COOKIE_NAME, access_token, **get_access_token_cookie_settings(prod))
    response.set_cookie(REFRESH_COOKIE_NAME, refresh_token, **get_refresh_token_cookie_settings(prod))
    return response


@router.post("/logout", response=TokenResponse, auth=None)
def logout_user(request: HttpRequest):
    response = _json_response(TokenResponse(success=True, message="Logged out"))
    response.delete_cookie(ACCESS_COOKIE_NAME, path='/')
    response.delete_cookie(REFRESH_COOKIE_NAME, path='/')
    return response


@router.post("/refresh", response=TokenResponse, auth=None)
def refresh_token(request: HttpRequest):
    """
    Refresh the access token using the refresh token.
    """
    refresh_token_value = request.COOKIES.get(REFRESH_COOKIE_NAME)
    if not refresh_token_value:
        raise HttpError(401, "No refresh token")

    user_id = get_user_id_from_token(refresh_token_value, token_type='refresh')
    if not user_id:
        raise HttpError(401, "Invalid refresh token")

    user = User.objects.filter(id=user_id, is_active=True).first()
    if not user:
        raise HttpError(401, "Invalid refresh token")

    response = _json_response(TokenResponse(success=True, user=services.to_user_dto(user)))
    response.set_cookie(
        ACCESS_COOKIE_NAME,
        create_access_token(user.id, user.role),
        **get_access_token_cookie_settings(is_production())
    )
    return response


@router.get("/me", response=UserDTO, auth=None)
def get_me(request: HttpRequest):
    """Get current authenticated user's profile and effective entitlements."""
    user = require_auth(request)
    return services.to_user_dto(user)


@router.patch("/me", response=UserDTO, auth=None)
def update_me(request: HttpRequest, payload: ProfileUpdate):
    user = require_auth(request)
    return services.update_profile(user, payload.dict(exclude_unset=True))


# =============================================================================
# Admin Endpoints
# =============================================================================

@router.get("/admin/users", response=List[UserDTO], auth=None)
@entitlement_required(Entitlement.ADMIN_USERS)
def admin_list_users(request: HttpRequest, search: Optional[str] = None, limit: int = 100):
    return services.list_users(search=search, limit=max(1, min(limit, 500)))


@router.post("/admin/users/{user_id}/entitlements/grant", response=UserDTO, auth=None)
@entitlement_required(Entitlement.ADMIN_USERS)
def admin_grant_entitlement(request: HttpRequest, user_id: UUID, payload: EntitlementChangeIn):
    target = get_object_or_404(User, id=user_id)
    try:
        return services.grant_entitlement(request.auth_user, target, payload.entitlement, payload.reason)
    except ValueError as e:
        raise HttpError(400, str(e))


@router.post("/admin/users/{user_id}/entitlements/revoke", response=UserDTO, auth=None)
@entitlement_required(Entitlement.ADMIN_USERS)
def admin_revoke_entitlement(request: HttpRequest, user_id: UUID, payload: EntitlementChangeIn):
    target = get_object_or_404(User, id=user_id)
    try:
        return services.revoke_entitlement(request.auth_user, target, payload.entitlement, payload.reason)
    except ValueError as e:
        raise HttpError(400, str(e))


@router.post("/admin/users/{user_id}/credits", response=UserDTO, auth=None)
@entitlement_required(Entitlement.ADMIN_USERS)
def admin_grant_credits(request: HttpRequest, user_id: UUID, payload: CreditGrantIn):
    target = get_object_or_404(User, id=user_id)
    try:
        return services.grant_credits(
            request.auth_user, target, payload.amount, payload.expires_at, payload.reason
        )
    except ValueError as e:
        raise HttpError(400, str(e))


@router.post("/admin/users/{user_id}/role", response=UserDTO, auth=None)
@entitlement_required(Entitlement.ADMIN_USERS)
def admin_change_role(request: HttpRequest, user_id: UUID, payload: RoleChangeIn):
    target = get_object_or_404(User, id=user_id)
    try:
        return services.change_role(request.auth_user, target, payload.role)
    except ValueError as e:
        raise HttpError(400, str(e))
