from django.http import HttpRequest
from ninja import Router

from apps.identity.security import require_auth
from . import services
from .dtos import (
    AddressValidationIn,
    AddressValidationOut,
    GeoErrorOut,
    ReverseGeocodeIn,
    ReverseGeocodeOut,
)

router = Router(tags=["Geo"])

ERROR_STATUSES = frozenset({400, 403, 404, 429, 500, 502, 504})


def _error(e: services.GeoServiceError):
    return e.status, {"success": False, "error": {"code": e.code, "message": e.message}}


@router.post(
    "/address/validate",
    response={200: AddressValidationOut, ERROR_STATUSES: GeoErrorOut},
    auth=None,
)
def validate_address(request: HttpRequest, payload: AddressValidationIn):
    """Validate and standardize a street address (USPS CASS for US addresses)."""
    require_auth(request)
    try:
        validation = services.validate_address(payload.dict())
    except services.GeoServiceError as e:
        return _error(e)
    return 200, {"success": True, "validation": validation}


@router.post(
    "/geocoding/reverse",
    response={200: ReverseGeocodeOut, ERROR_STATUSES: GeoErrorOut},
    auth=None,
    exclude_unset=True,
)
def reverse_geocode(request: HttpRequest, payload: ReverseGeocodeIn):
    """Street address nearest to a latitude/longitude pair."""
    require_auth(request)
    try:
        result = services.reverse_geocode(payload.latitude, payload.longitude)
    except services.GeoServiceError as e:
        return _error(e)
    return 200, {"success": True, **result}
