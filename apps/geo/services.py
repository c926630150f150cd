"""
Address validation and reverse geocoding over Google Maps Platform.

Both calls reshape Google's responses into the compact structures the
proposal builder consumes. The API key stays server-side.
"""
import logging
from numbers import Number
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from apps.identity.entitlements import is_production_environment

logger = logging.getLogger(__name__)

ADDRESS_VALIDATION_URL = 'https://addressvalidation.googleapis.com/v1:validateAddress'
GEOCODE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'
REVERSE_GEOCODE_RESULT_TYPES = 'street_address|premise|subpremise|route'
API_TIMEOUT_SECONDS = 10


class GeoServiceError(Exception):
    def __init__(self, code: str, message: str, status: int):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status


def _api_key(purpose: str) -> str:
    api_key = getattr(settings, 'GOOGLE_MAPS_API_KEY', '')
    if not api_key:
        logger.error("GOOGLE_MAPS_API_KEY is not configured for %s", purpose)
    return api_key


# =============================================================================
# Address validation
# =============================================================================

def build_validation_request(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Google request body from structured fields (preferred) or a single
    address string. Returns None when neither is usable.
    """
    structured = body.get('structured')
    region_code = (structured or {}).get('regionCode') or 'US'

    if structured:
        postal_code = structured.get('postalCode')
        if structured.get('postalCodeSuffix'):
            postal_code = f"{postal_code}-{structured['postalCodeSuffix']}"
        lines = [structured.get('line1')]
        if structured.get('line2'):
            lines.append(structured['line2'])
        return {
            'address': {
                'regionCode': region_code,
                'addressLines': lines,
                'locality': structured.get('city'),
                'administrativeArea': structured.get('state'),
                'postalCode': postal_code,
            },
            'enableUspsCass': region_code == 'US',
        }

    address = body.get('address')
    if isinstance(address, str) and address.strip():
        return {
            'address': {'regionCode': region_code, 'addressLines': [address.strip()]},
            'enableUspsCass': region_code == 'US',
        }
    return None


def format_usps_address(usps_data: Dict[str, Any]) -> Optional[str]:
    addr = usps_data.get('standardizedAddress')
    if not addr:
        return None

    parts = [p for p in (addr.get('firstAddressLine'), addr.get('secondAddressLine')) if p]
    if addr.get('cityStateZipAddressLine'):
        parts.append(addr['cityStateZipAddressLine'])
    elif addr.get('city') and addr.get('state'):
        zip_code = addr.get('zipCode') or ''
        if addr.get('zipCodeExtension'):
            zip_code = f"{zip_code}-{addr['zipCodeExtension']}"
        parts.append(f"{addr['city']}, {addr['state']} {zip_code}".strip())

    return ', '.join(parts) if parts else None


def is_missing_subpremise(result: Dict[str, Any]) -> bool:
    """Residential address whose unit/apartment number appears to be missing."""
    is_residential = (result.get('metadata') or {}).get('residential') is True
    missing_types = (result.get('address') or {}).get('missingComponentTypes') or []
    dpv_footnote = (result.get('uspsData') or {}).get('dpvFootnote') or ''

    # M3: primary number matched, secondary number missing
    might_need_unit = 'M3' in dpv_footnote or any(t in missing_types for t in ('subpremise', 'floor', 'room'))
    return is_residential and might_need_unit


def build_warning_messages(result: Dict[str, Any], verdict_details: Dict[str, Any]) -> List[str]:
    messages = []

    granularity = verdict_details['validationGranularity']
    if granularity == 'OTHER':
        messages.append('Address could not be validated at street level')
    elif granularity == 'ROUTE':
        messages.append('Address validated to street level only - building number may be unconfirmed')

    unconfirmed = verdict_details['unconfirmedComponentTypes']
    if verdict_details['hasUnconfirmedComponents'] and unconfirmed:
        types = ', '.join(t.replace('_', ' ').lower() for t in unconfirmed)
        messages.append(f'Some address parts could not be verified: {types}')

    missing_types = (result.get('address') or {}).get('missingComponentTypes') or []
    if 'subpremise' in missing_types or 'floor' in missing_types:
        messages.append('This address may need a unit or apartment number')

    dpv = (result.get('uspsData') or {}).get('dpvConfirmation') or ''
    if dpv == 'N':
        messages.append('Address could not be confirmed as a valid USPS delivery point')
    elif dpv == 'D':
        messages.append('Address is missing secondary information (apt/unit)')
    elif dpv == 'S':
        messages.append('Primary address matched but secondary info could not be verified')

    if (result.get('verdict') or {}).get('hasInferredComponents'):
        messages.append('Some parts of this address were inferred - please verify')

    return messages


def _verdict_label(verdict: Dict[str, Any]) -> str:
    if verdict.get('addressComplete') and not verdict.get('hasUnconfirmedComponents'):
        return 'CONFIRMED'
    if verdict.get('hasUnconfirmedComponents'):
        return 'UNCONFIRMED_COMPONENTS'
    if verdict.get('hasInferredComponents'):
        return 'INFERRED'
    if verdict.get('hasReplacedComponents'):
        return 'CORRECTED'
    return 'UNKNOWN'


def summarize_validation(result: Dict[str, Any]) -> Dict[str, Any]:
    verdict = result.get('verdict') or {}
    address = result.get('address') or {}
    usps_data = result.get('uspsData') or {}

    verdict_details = {
        'validationGranularity': verdict.get('validationGranularity') or 'OTHER',
        'geocodeGranularity': verdict.get('geocodeGranularity') or 'OTHER',
        'addressComplete': bool(verdict.get('addressComplete')),
        'hasUnconfirmedComponents': bool(verdict.get('hasUnconfirmedComponents')),
        'hasReplacedComponents': bool(verdict.get('hasReplacedComponents')),
        'unconfirmedComponentTypes': address.get('unconfirmedComponentTypes') or [],
    }

    standardized = format_usps_address(usps_data) if usps_data else None
    standardized = standardized or address.get('formattedAddress') or None

    return {
        'verdict': _verdict_label(verdict),
        'verdictDetails': verdict_details,
        'hasUnconfirmedComponents': bool(verdict.get('hasUnconfirmedComponents')),
        'missingSubpremise': is_missing_subpremise(result),
        'dpvConfirmation': usps_data.get('dpvConfirmation') or '',
        'standardizedAddress': standardized,
        'correctedFormatted': standardized,
        'granularity': verdict.get('validationGranularity') or verdict.get('geocodeGranularity') or 'UNKNOWN',
        'addressInferred': bool(verdict.get('hasInferredComponents')),
        'isResidential': bool((result.get('metadata') or {}).get('residential')),
        'isComplete': bool(verdict.get('addressComplete')),
        'messages': build_warning_messages(result, verdict_details),
    }


def validate_address(body: Dict[str, Any], session=None) -> Dict[str, Any]:
    """
    Validate an address with Google's Address Validation API (USPS CASS
    enabled for US addresses).

    Raises:
        GeoServiceError: INVALID_INPUT, CONFIG_ERROR, API_DISABLED, API_ERROR,
            NO_RESULT or TIMEOUT
    """
    validation_request = build_validation_request(body)
    if not validation_request:
        raise GeoServiceError(
            'INVALID_INPUT',
            'Address is required. Provide either structured fields or address string.',
            400,
        )

    api_key = _api_key('address validation')
    if not api_key:
        raise GeoServiceError('CONFIG_ERROR', 'Address validation service is not configured', 500)

    if not is_production_environment():
        logger.debug("Address validation request: %s", validation_request)

    http = session or requests
    try:
        response = http.post(
            ADDRESS_VALIDATION_URL,
            params={'key': api_key},
            json=validation_request,
            timeout=API_TIMEOUT_SECONDS,
        )
    except requests.Timeout:
        logger.error("Address Validation API timeout")
        raise GeoServiceError('TIMEOUT', 'Address validation timed out. Please try again.', 504)
    except requests.RequestException as e:
        logger.error("Address Validation API request failed: %s", e)
        raise GeoServiceError('API_ERROR', 'Failed to validate address', 502)

    if not response.ok:
        logger.error(
            "Address Validation API error: %s %s",
            response.status_code,
            '[response hidden]' if is_production_environment() else response.text,
        )
        if response.status_code == 403:
            raise GeoServiceError(
                'API_DISABLED',
                'Address Validation API is not enabled. Please enable it in Google Cloud Console.',
                502,
            )
        raise GeoServiceError('API_ERROR', 'Failed to validate address', 502)

    try:
        result = response.json().get('result')
    except ValueError:
        raise GeoServiceError('API_ERROR', 'Failed to validate address', 502)

    if not result:
        raise GeoServiceError('NO_RESULT', 'No validation result returned', 404)
    return summarize_validation(result)


# =============================================================================
# Reverse geocoding
# =============================================================================

COMPONENT_FIELDS = (
    # (google type, long_name key, short_name key)
    ('street_number', 'streetNumber', None),
    ('route', 'street', None),
    ('locality', 'city', None),
    ('administrative_area_level_2', 'county', None),
    ('administrative_area_level_1', 'state', 'stateCode'),
    ('country', 'country', 'countryCode'),
    ('postal_code', 'postalCode', None),
    ('neighborhood', 'neighborhood', None),
    ('sublocality', 'neighborhood', None),
)

GEOCODE_STATUS_ERRORS = {
    'ZERO_RESULTS': ('NO_RESULTS', 'No address found for these coordinates', 404),
    'OVER_QUERY_LIMIT': ('QUOTA_EXCEEDED', 'Geocoding service quota exceeded. Please try again later.', 429),
    'REQUEST_DENIED': ('REQUEST_DENIED', 'Geocoding request was denied. Please contact support.', 403),
    'INVALID_REQUEST': ('INVALID_REQUEST', 'Invalid geocoding request', 400),
}


def extract_address_components(components: List[Dict[str, Any]]) -> Dict[str, str]:
    result = {}
    for component in components or []:
        types = component.get('types') or []
        for google_type, long_key, short_key in COMPONENT_FIELDS:
            if google_type in types:
                result[long_key] = component.get('long_name')
                if short_key:
                    result[short_key] = component.get('short_name')
    return result


def _geocode_result(result: Dict[str, Any]) -> Dict[str, Any]:
    geometry = result.get('geometry') or {}
    location = geometry.get('location') or {}
    return {
        'formattedAddress': result.get('formatted_address'),
        'components': extract_address_components(result.get('address_components')),
        'placeId': result.get('place_id'),
        'locationType': geometry.get('location_type'),
        'types': result.get('types') or [],
        'lat': location.get('lat'),
        'lng': location.get('lng'),
    }


def _is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def reverse_geocode(latitude, longitude, session=None) -> Dict[str, Any]:
    """
    Street address for a coordinate pair.

    Returns {'data': first result, 'allResults': every result}.
    """
    if not _is_number(latitude) or not _is_number(longitude):
        raise GeoServiceError('INVALID_INPUT', 'Latitude and longitude must be numbers', 400)
    if not -90 <= latitude <= 90:
        raise GeoServiceError('INVALID_LATITUDE', 'Latitude must be between -90 and 90', 400)
    if not -180 <= longitude <= 180:
        raise GeoServiceError('INVALID_LONGITUDE', 'Longitude must be between -180 and 180', 400)

    api_key = _api_key('reverse geocoding')
    if not api_key:
        raise GeoServiceError('CONFIG_ERROR', 'Geocoding service is not configured. Please contact support.', 500)

    http = session or requests
    try:
        response = http.get(
            GEOCODE_URL,
            params={
                'latlng': f"{latitude},{longitude}",
                'key': api_key,
                'result_type': REVERSE_GEOCODE_RESULT_TYPES,
            },
            timeout=API_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("Google Geocoding API request failed: %s", e)
        raise GeoServiceError('API_ERROR', 'Failed to communicate with geocoding service', 502)

    if not response.ok:
        logger.error("Google Geocoding API HTTP error: %s", response.status_code)
        raise GeoServiceError('API_ERROR', 'Failed to communicate with geocoding service', 502)

    data = response.json()
    status = data.get('status')

    if status == 'OK':
        results = data.get('results') or []
        if not results:
            raise GeoServiceError('NO_RESULTS', 'No address found for these coordinates', 404)
        all_results = [_geocode_result(r) for r in results]
        return {'data': all_results[0], 'allResults': all_results}

    if status in GEOCODE_STATUS_ERRORS:
        code, message, http_status = GEOCODE_STATUS_ERRORS[status]
        logger.warning("Google Geocoding API returned %s: %s", status, data.get('error_message', ''))
        raise GeoServiceError(code, message, http_status)

    logger.error("Unknown Google Geocoding API status: %s", status)
    raise GeoServiceError('UNKNOWN_ERROR', 'An unexpected error occurred', 500)
