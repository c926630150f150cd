from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from ninja import Schema


class AuditLogOut(Schema):
    id: UUID
    action: str
    actor_email: str
    target_user_id: Optional[UUID] = None
    target_user_email: str
    resource_type: str
    resource_value: str
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    metadata: Any
    created_at: datetime
