from django.http import HttpRequest, HttpResponse
from ninja import Router

from apps.identity.security import require_auth
from . import services
from .dtos import DashboardStatsOut

router = Router(tags=["Dashboard"])


@router.get("/stats", response=DashboardStatsOut, auth=None)
def dashboard_stats(request: HttpRequest, response: HttpResponse):
    """Credits and 30-day proposal totals for the dashboard header."""
    user = require_auth(request)
    # Credits change on unlock; never serve a cached copy
    response['Cache-Control'] = 'no-store, no-cache, must-revalidate, proxy-revalidate'
    response['Pragma'] = 'no-cache'
    response['Expires'] = '0'
    return services.get_dashboard_stats(user)
