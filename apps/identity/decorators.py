from functools import wraps
from typing import Callable
from django.http import HttpRequest
from .security import require_entitlement


def entitlement_required(entitlement: str):
    """
    Decorator to enforce an entitlement on a Django Ninja endpoint.

    The resolved user is attached as request.auth_user.

    Usage:
        @router.get("/some-path", auth=None)
        @entitlement_required(Entitlement.ADMIN_USERS)
        def my_view(request):
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            request.auth_user = require_entitlement(request, entitlement)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
