"""
URL configuration for ScopeGen project.
"""
from django.contrib import admin
from django.urls import path
from django.conf import settings
from django.conf.urls.static import static
from ninja import NinjaAPI

api = NinjaAPI(
    title="ScopeGen API",
    version="1.0.0",
    description="Contractor proposal generation, delivery and tracking API",
    docs_url="/docs",
)

from apps.identity.api import router as identity_router
from apps.governance.api import router as governance_router
from apps.billing.api import router as billing_router
from apps.proposals.api import router as proposals_router
from apps.proposals.public_api import router as public_proposals_router
from apps.proposals.dashboard_api import router as dashboard_router
from apps.proposals.templates_api import router as templates_router
from apps.scopescan.api import router as scopescan_router
from apps.roofing.api import router as roofing_router
from apps.roofing.api import webhook_router as eagleview_webhook_router
from apps.geo.api import router as geo_router

api.add_router("/identity/", identity_router)
api.add_router("/governance/", governance_router)
api.add_router("/billing/", billing_router)
api.add_router("/proposals/", proposals_router)
api.add_router("/public/proposal/", public_proposals_router)
api.add_router("/dashboard/", dashboard_router)
api.add_router("/templates/", templates_router)
api.add_router("/scopescan/", scopescan_router)
api.add_router("/roofing/eagleview/", roofing_router)
api.add_router("/webhooks/eagleview", eagleview_webhook_router)
api.add_router("/", geo_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]

# Serve uploaded photos in development
if settings.DEBUG:
    urlpatterns += static(
        getattr(settings, 'MEDIA_URL', '/media/'),
        document_root=getattr(settings, 'MEDIA_ROOT', settings.BASE_DIR / 'media')
    )
