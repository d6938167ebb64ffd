import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import PAYROLL_ROLES, require_roles
from ..db import get_db
from ..schemas.audit import AuditLogResponse
from ..services.audit import ENTITY_TYPES, get_audit_logs, verify_integrity


router = APIRouter(prefix="/audit", tags=["audit"])


def _rows(logs) -> List[AuditLogResponse]:
    out = []
    for log in logs:
        row = AuditLogResponse.model_validate(log)
        row.verified = verify_integrity(log)
        out.append(row)
    return out


@router.get("", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    if entity_type and entity_type not in ENTITY_TYPES:
        raise HTTPException(status_code=422, detail=f"Unknown entity type: {entity_type}")
    limit = max(1, min(limit, 500))
    return _rows(get_audit_logs(db, entity_type=entity_type, action=action, limit=limit, offset=offset))


@router.get("/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
def entity_history(
    entity_type: str,
    entity_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*PAYROLL_ROLES)),
):
    """Full history of one commission, ticket, employee or subcontract job."""
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(status_code=422, detail=f"Unknown entity type: {entity_type}")
    return _rows(get_audit_logs(db, entity_type=entity_type, entity_id=entity_id, limit=500))
