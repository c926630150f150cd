"""
Request authentication helpers shared by every app's API layer.

A request is authenticated by the JWT access token cookie or, failing that,
by a Django session (admin site, test client force_login).
"""
import os
from typing import Optional

from django.conf import settings
from django.http import HttpRequest
from ninja.errors import HttpError

from .entitlements import has_entitlement
from .jwt_auth import ACCESS_COOKIE_NAME, get_user_id_from_token
from .models import User


def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Resolve the authenticated user for a request.

    Returns User object if valid token or session, None otherwise.
    """
    access_token = request.COOKIES.get(ACCESS_COOKIE_NAME)
    if access_token:
        user_id = get_user_id_from_token(access_token)
        if user_id:
            user = User.objects.filter(id=user_id, is_active=True).first()
            if user:
                return user

    session_user = getattr(request, 'user', None)
    if session_user is not None and session_user.is_authenticated and session_user.is_active:
        return session_user
    return None


def require_auth(request: HttpRequest) -> User:
    """Require authentication. Raises 401 if not authenticated."""
    user = get_current_user(request)
    if not user:
        raise HttpError(401, "Authentication required")
    return user


def require_entitlement(request: HttpRequest, entitlement: str) -> User:
    """Require a specific entitlement. Raises 401/403."""
    user = require_auth(request)
    if not has_entitlement(user, entitlement):
        raise HttpError(403, f"Missing entitlement: {entitlement}")
    return user


def is_production() -> bool:
    """Check if running in production (Lambda or DEBUG=False)."""
    return bool(os.getenv('AWS_LAMBDA_FUNCTION_NAME')) or not settings.DEBUG
