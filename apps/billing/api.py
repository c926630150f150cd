from django.http import HttpRequest
from ninja import Router

from apps.identity.security import require_auth
from .dtos import BillingStatusOut
from .services import get_billing_status

router = Router(tags=["Billing"])


@router.get("/status", response=BillingStatusOut, auth=None)
def billing_status(request: HttpRequest):
    """Current plan, subscription status and credit balance."""
    user = require_auth(request)
    return get_billing_status(user)
