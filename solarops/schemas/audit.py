import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    actor_id: Optional[uuid.UUID] = None
    actor_role: Optional[str] = None
    source: Optional[str] = None
    changes_json: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None
    timestamp_utc: datetime
    integrity_hash: Optional[str] = None
    verified: bool = False

    class Config:
        from_attributes = True
