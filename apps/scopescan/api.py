import logging

from django.http import HttpRequest
from ninja import Router

from apps.identity.security import require_auth
from .dedup import deduplicate_findings
from .dtos import DeduplicateIn, DeduplicateOut

logger = logging.getLogger(__name__)

router = Router(tags=["ScopeScan"])


@router.post("/findings/deduplicate", response=DeduplicateOut, auth=None)
def deduplicate(request: HttpRequest, payload: DeduplicateIn):
    """Merge findings that describe the same object and problem."""
    require_auth(request)
    findings = [finding.dict() for finding in payload.findings]
    merged = deduplicate_findings(findings)
    logger.debug("Deduplicated %s findings into %s", len(findings), len(merged))
    return DeduplicateOut(findings=merged, removed=len(findings) - len(merged))
