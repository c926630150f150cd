"""
EagleView API client.

OAuth2 client-credentials flow plus the handful of measurement endpoints
ScopeGen uses. Tokens are cached per process until five minutes before
they expire.

Environment Variables:
    EAGLEVIEW_CLIENT_ID: OAuth client id (required)
    EAGLEVIEW_CLIENT_SECRET: OAuth client secret (required)
    EAGLEVIEW_WEBHOOK_SECRET: Shared secret sent back on webhooks
    EAGLEVIEW_BASE_URL: API root (default: https://api.eagleview.com)
    EAGLEVIEW_AUTH_URL: Token endpoint (default: https://auth.eagleview.com/oauth2/token)
"""
import hmac
import logging
import math
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.eagleview.com'
DEFAULT_AUTH_URL = 'https://auth.eagleview.com/oauth2/token'
TOKEN_SCOPE = 'measurement:create measurement:read report:read'
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60
PRODUCT_TYPE = 'PREMIUM_ROOF_MEASUREMENT'

STATUS_MAP = {
    'CREATED': 'queued',
    'PENDING': 'queued',
    'IN_PROGRESS': 'processing',
    'COMPLETED': 'completed',
    'FAILED': 'failed',
    'CANCELLED': 'failed',
}

_ADDRESS_PATTERNS = (
    # "123 Main St, City, ST 12345"
    re.compile(r'^(.+?),\s*(.+?),\s*([A-Z]{2})\s*(\d{5}(?:-\d{4})?)$', re.IGNORECASE),
    # "123 Main St, City ST 12345"
    re.compile(r'^(.+?),\s*(.+?)\s+([A-Z]{2})\s*(\d{5}(?:-\d{4})?)$', re.IGNORECASE),
)


class EagleViewError(Exception):
    """An EagleView call failed; status is the upstream HTTP status when known."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class EagleViewNotConfigured(EagleViewError):
    pass


@dataclass(frozen=True)
class EagleViewConfig:
    client_id: str
    client_secret: str
    webhook_secret: str
    base_url: str
    auth_url: str


@dataclass(frozen=True)
class EagleViewAddress:
    address1: str
    city: str
    state: str
    zip: str
    country: str = 'US'

    def formatted(self) -> str:
        return f"{self.address1}, {self.city}, {self.state} {self.zip}"


def get_eagleview_config() -> EagleViewConfig:
    """Raises EagleViewNotConfigured when the client credentials are missing."""
    client_id = os.getenv('EAGLEVIEW_CLIENT_ID')
    client_secret = os.getenv('EAGLEVIEW_CLIENT_SECRET')
    if not client_id:
        raise EagleViewNotConfigured('EAGLEVIEW_CLIENT_ID is not configured')
    if not client_secret:
        raise EagleViewNotConfigured('EAGLEVIEW_CLIENT_SECRET is not configured')

    return EagleViewConfig(
        client_id=client_id,
        client_secret=client_secret,
        webhook_secret=os.getenv('EAGLEVIEW_WEBHOOK_SECRET', ''),
        base_url=os.getenv('EAGLEVIEW_BASE_URL') or DEFAULT_BASE_URL,
        auth_url=os.getenv('EAGLEVIEW_AUTH_URL') or DEFAULT_AUTH_URL,
    )


def is_eagleview_configured() -> bool:
    return bool(os.getenv('EAGLEVIEW_CLIENT_ID') and os.getenv('EAGLEVIEW_CLIENT_SECRET'))


def parse_address(full_address: str) -> Optional[EagleViewAddress]:
    """Split a one-line US address into components, or None if it doesn't parse."""
    text = (full_address or '').strip()
    for pattern in _ADDRESS_PATTERNS:
        match = pattern.match(text)
        if match:
            return EagleViewAddress(
                address1=match.group(1).strip(),
                city=match.group(2).strip(),
                state=match.group(3).upper(),
                zip=match.group(4),
            )
    return None


def map_eagleview_status(status: Optional[str]) -> str:
    return STATUS_MAP.get(status or '', 'queued')


def parse_roofing_measurements(report: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Normalize a report's measurements block; None when the report has none."""
    m = (report or {}).get('measurements')
    if not m:
        return None

    area = m.get('totalRoofArea') or 0
    return {
        'squares': m.get('totalSquares') or math.floor(area / 100 + 0.5),
        'roofAreaSqFt': area,
        'pitchBreakdown': [
            {'pitch': p.get('pitch'), 'areaSqFt': p.get('area')}
            for p in m.get('pitchBreakdown') or []
        ],
        'ridgesFt': m.get('ridgesLength') or 0,
        'hipsFt': m.get('hipsLength') or 0,
        'valleysFt': m.get('valleysLength') or 0,
        'eavesFt': m.get('eavesLength') or 0,
        'rakesFt': m.get('rakesLength') or 0,
        'flashingFt': m.get('flashingLength'),
        'dripEdgeFt': m.get('dripEdgeLength'),
        'stepFlashingFt': m.get('stepFlashingLength'),
        'facets': m.get('facets'),
        'stories': m.get('stories'),
        'predominantPitch': m.get('predominantPitch'),
    }


def verify_webhook_signature(signature: Optional[str], secret: Optional[str]) -> bool:
    """EagleView echoes the shared secret in a header; compare in constant time."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(signature.encode(), secret.encode())


class EagleViewClient:
    """Thin wrapper over the EagleView REST API."""

    DEFAULT_TIMEOUT = 20

    # Shared by every client instance in the process
    _token_cache: Optional[Dict[str, Any]] = None

    def __init__(self, config: Optional[EagleViewConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_eagleview_config()
        self.session = session or requests.Session()

    @classmethod
    def clear_token_cache(cls):
        cls._token_cache = None

    def get_access_token(self) -> str:
        cached = EagleViewClient._token_cache
        if cached and cached['expires_at'] - TOKEN_REFRESH_MARGIN_SECONDS > time.time():
            return cached['access_token']

        try:
            response = self.session.post(
                self.config.auth_url,
                data={
                    'grant_type': 'client_credentials',
                    'client_id': self.config.client_id,
                    'client_secret': self.config.client_secret,
                    'scope': TOKEN_SCOPE,
                },
                timeout=self.DEFAULT_TIMEOUT,
            )
        except requests.RequestException as e:
            raise EagleViewError(f"EagleView token request failed: {e}")

        if not response.ok:
            logger.error("EagleView token request failed: %s %s", response.status_code, response.text)
            raise EagleViewError(
                f"Failed to acquire EagleView access token: {response.status_code}",
                status=response.status_code,
            )

        data = response.json()
        EagleViewClient._token_cache = {
            'access_token': data['access_token'],
            'expires_at': time.time() + int(data.get('expires_in', 3600)),
        }
        return data['access_token']

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        headers = {
            'Authorization': f"Bearer {self.get_access_token()}",
            'Accept': 'application/json',
        }
        try:
            response = self.session.request(
                method,
                f"{self.config.base_url}{endpoint}",
                headers=headers,
                timeout=self.DEFAULT_TIMEOUT,
                **kwargs
            )
        except requests.RequestException as e:
            raise EagleViewError(f"EagleView request failed: {e}")

        if not response.ok:
            logger.error("EagleView API error [%s]: %s %s", endpoint, response.status_code, response.text)
            raise EagleViewError(f"EagleView API error: {response.status_code}", status=response.status_code)
        return response.json()

    def create_measurement_order(
        self,
        address: EagleViewAddress,
        reference_id: str,
        webhook_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            'address': {
                'streetAddress': address.address1,
                'city': address.city,
                'state': address.state,
                'postalCode': address.zip,
                'country': address.country or 'US',
            },
            'productType': PRODUCT_TYPE,
            'referenceId': reference_id,
            'deliveryMethod': 'API',
        }
        if webhook_url:
            payload['callbackUrl'] = webhook_url
        return self._request('POST', '/v2/orders', json=payload)

    def get_order_status(self, order_id: str) -> Dict[str, Any]:
        return self._request('GET', f"/v2/orders/{order_id}")

    def get_report(self, report_id: str) -> Dict[str, Any]:
        return self._request('GET', f"/v2/reports/{report_id}")
