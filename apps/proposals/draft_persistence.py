"""
Draft persistence.

Serialization, deserialization and schema migration for in-progress
proposal drafts. Drafts travel as camelCase JSON because the same envelope
is written to browser storage by the editor and to ProposalDraftRecord by
the drafts endpoints.

Schema history:
    v2: window fields (windowQuantity, windowSizePreset, windowWidthIn, windowHeightIn)
    v3: server-backed proposalId; blob: photo URLs are dropped on restore
"""
import copy
import json
import math
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

DRAFT_SCHEMA_VERSION = 3

STORAGE_KEY_PREFIX = 'scopegen_proposal_draft'

DEFAULT_WINDOW_QUANTITY = 1
DEFAULT_WINDOW_SIZE_PRESET = '30x60'


@dataclass(frozen=True)
class DeserializeResult:
    success: bool
    draft: Optional[dict] = None
    timestamp: Optional[int] = None
    error: Optional[str] = None


def _failure(error: str) -> DeserializeResult:
    return DeserializeResult(success=False, error=error)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_draft_storage_key(user_id: Optional[str]) -> str:
    return f"{STORAGE_KEY_PREFIX}_{user_id or 'anon'}"


def create_empty_draft() -> dict:
    return {
        'proposalId': None,
        'clientName': '',
        'address': '',
        'services': [
            {
                'id': str(uuid.uuid4()),
                'tradeId': '',
                'jobTypeId': '',
                'jobSize': 2,
                'homeArea': '',
                'footage': None,
                'options': {},
                'windowQuantity': DEFAULT_WINDOW_QUANTITY,
                'windowSizePreset': DEFAULT_WINDOW_SIZE_PRESET,
                'windowWidthIn': None,
                'windowHeightIn': None,
            }
        ],
        'photos': [],
        'enhancedScopes': {},
    }


def _is_valid_service(service: Any) -> bool:
    if not isinstance(service, dict):
        return False
    for key in ('id', 'tradeId', 'jobTypeId', 'homeArea'):
        if not isinstance(service.get(key), str):
            return False
    if not _is_number(service.get('jobSize')):
        return False
    footage = service.get('footage')
    if footage is not None and not _is_number(footage):
        return False
    return isinstance(service.get('options'), dict)


def validate_draft_structure(draft: Any) -> bool:
    """Check the shape of a draft. Photo entries are not inspected."""
    if not isinstance(draft, dict):
        return False
    if not isinstance(draft.get('clientName'), str) or not isinstance(draft.get('address'), str):
        return False

    proposal_id = draft.get('proposalId')
    if proposal_id is not None and not _is_number(proposal_id):
        return False

    services = draft.get('services')
    if not isinstance(services, list) or not all(_is_valid_service(s) for s in services):
        return False

    if not isinstance(draft.get('photos'), list):
        return False
    return isinstance(draft.get('enhancedScopes'), dict)


def serialize_draft(draft: dict, timestamp: Optional[int] = None) -> str:
    return json.dumps({
        'version': DRAFT_SCHEMA_VERSION,
        'timestamp': _now_ms() if timestamp is None else timestamp,
        'draft': draft,
    })


# =============================================================================
# Migrations
# =============================================================================

def _default(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _migrate_v1_to_v2(draft: dict) -> dict:
    migrated = dict(draft)
    services = draft.get('services')
    if isinstance(services, list):
        migrated['services'] = [
            {
                **service,
                'windowQuantity': _default(service.get('windowQuantity'), DEFAULT_WINDOW_QUANTITY),
                'windowSizePreset': _default(service.get('windowSizePreset'), DEFAULT_WINDOW_SIZE_PRESET),
                'windowWidthIn': service.get('windowWidthIn'),
                'windowHeightIn': service.get('windowHeightIn'),
            } if isinstance(service, dict) else service
            for service in services
        ]
    return migrated


def _is_restorable_photo(photo: Any) -> bool:
    if not isinstance(photo, dict):
        return False
    url = photo.get('url')
    if not isinstance(url, str):
        return False
    trimmed = url.strip()
    return bool(trimmed) and not trimmed.startswith('blob:')


def _migrate_v2_to_v3(draft: dict) -> dict:
    migrated = dict(draft)
    migrated['proposalId'] = None
    photos = draft.get('photos')
    migrated['photos'] = [p for p in photos if _is_restorable_photo(p)] if isinstance(photos, list) else []
    return migrated


MIGRATIONS: Dict[int, Callable[[dict], dict]] = {
    1: _migrate_v1_to_v2,
    2: _migrate_v2_to_v3,
}


def migrate_draft(draft: dict, from_version: int) -> dict:
    """Apply every migration step from from_version up to the current schema."""
    migrated = copy.deepcopy(draft)
    for version in range(from_version, DRAFT_SCHEMA_VERSION):
        migrated = MIGRATIONS[version](migrated)
    return migrated


def deserialize_draft(raw: Optional[str]) -> DeserializeResult:
    if not raw:
        return _failure('No draft data')

    try:
        parsed = json.loads(raw)
    except ValueError as e:
        return _failure(f'Parse error: {e}')

    if not isinstance(parsed, dict):
        return _failure('Invalid draft format')

    version = parsed.get('version')
    if not _is_number(version):
        return _failure('Missing version')

    if not math.isfinite(version) or version > DRAFT_SCHEMA_VERSION or version < 1 or version != int(version):
        return _failure(f'Schema version mismatch: expected {DRAFT_SCHEMA_VERSION}, got {version}')

    timestamp = parsed.get('timestamp')
    if not _is_number(timestamp) or not math.isfinite(timestamp):
        return _failure('Missing timestamp')

    draft = parsed.get('draft')
    if version < DRAFT_SCHEMA_VERSION:
        if not isinstance(draft, dict):
            return _failure('Invalid draft structure after migration')
        draft = migrate_draft(draft, int(version))
        if not validate_draft_structure(draft):
            return _failure('Invalid draft structure after migration')
        return DeserializeResult(success=True, draft=draft, timestamp=int(timestamp))

    if not validate_draft_structure(draft):
        return _failure('Invalid draft structure')

    return DeserializeResult(success=True, draft=draft, timestamp=int(timestamp))


def draft_has_content(draft: dict) -> bool:
    """True when the draft holds anything worth keeping."""
    if draft.get('clientName', '').strip() or draft.get('address', '').strip():
        return True
    if any(s.get('tradeId') or s.get('jobTypeId') for s in draft.get('services', [])):
        return True
    return bool(draft.get('photos')) or bool(draft.get('enhancedScopes'))


def drafts_are_equal(a: dict, b: dict) -> bool:
    if a.get('clientName') != b.get('clientName') or a.get('address') != b.get('address'):
        return False
    if len(a.get('services', [])) != len(b.get('services', [])):
        return False
    if len(a.get('photos', [])) != len(b.get('photos', [])):
        return False
    return json.dumps(a, sort_keys=True) == json.dumps(b, sort_keys=True)


def format_relative_time(timestamp: int, now: Optional[int] = None) -> str:
    """Render a millisecond timestamp as 'just now', '42s ago', '5 min ago', '3h ago' or a date."""
    diff = (_now_ms() if now is None else now) - timestamp

    if diff < 10_000:
        return 'just now'
    if diff < 60_000:
        return f'{diff // 1000}s ago'
    if diff < 3_600_000:
        return f'{diff // 60_000} min ago'
    if diff < 86_400_000:
        return f'{diff // 3_600_000}h ago'
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).date().isoformat()
