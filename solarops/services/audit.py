"""
Audit trail for payroll approvals, pay edits, ticket progress and
subcontract status changes.

Rows are append-only. Each row carries a SHA-256 over its canonical
fields keyed with JWT_SECRET, so a row edited outside the app no longer
verifies.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import AuditLog
from .time_tally import as_utc


ENTITY_TYPES = ("commission", "ticket", "app_user", "subcontract_job")


def _canonical(
    entity_type: str,
    entity_id,
    action: str,
    actor_id,
    actor_role: Optional[str],
    source: Optional[str],
    timestamp_utc: datetime,
    changes: Optional[Dict],
    context: Optional[Dict],
) -> Dict[str, Any]:
    fields = {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "action": action,
        "actor_id": str(actor_id) if actor_id else None,
        "actor_role": actor_role,
        "source": source,
        "timestamp_utc": as_utc(timestamp_utc).isoformat(),
        "changes": changes,
        "context": context,
    }
    return {k: v for k, v in fields.items() if v is not None}


def integrity_hash_for(canonical: Dict[str, Any], secret: str) -> str:
    body = json.dumps(canonical, sort_keys=True, default=str)
    return hashlib.sha256(f"{body}:{secret}".encode()).hexdigest()


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id,
    action: str,
    actor_id=None,
    actor_role: Optional[str] = None,
    source: Optional[str] = None,
    changes_json: Optional[Dict] = None,
    context: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
) -> AuditLog:
    """
    Append an audit row and commit it together with whatever the caller
    has pending in the session, so the change and its record land atomically.
    """
    source = source or "system"
    timestamp_utc = datetime.now(timezone.utc)
    secret = settings.jwt_secret if integrity_secret is None else integrity_secret

    integrity_hash = None
    if secret:
        integrity_hash = integrity_hash_for(
            _canonical(entity_type, entity_id, action, actor_id, actor_role, source, timestamp_utc, changes_json, context),
            secret,
        )

    log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        source=source,
        changes_json=changes_json,
        timestamp_utc=timestamp_utc,
        context=context,
        integrity_hash=integrity_hash,
    )
    db.add(log)
    db.commit()
    return log


def record_action(
    db: Session,
    actor,
    entity_type: str,
    entity_id,
    action: str,
    changes: Optional[Dict] = None,
    context: Optional[Dict] = None,
    source: str = "app",
) -> AuditLog:
    """Shorthand for create_audit_log with the actor's id and role filled in."""
    return create_audit_log(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor.id if actor is not None else None,
        actor_role=getattr(actor, "role_category", None),
        source=source,
        changes_json=changes,
        context=context,
    )


def verify_integrity(log: AuditLog, secret: Optional[str] = None) -> bool:
    secret = settings.jwt_secret if secret is None else secret
    if not log.integrity_hash or not secret:
        return False
    expected = integrity_hash_for(
        _canonical(
            log.entity_type,
            log.entity_id,
            log.action,
            log.actor_id,
            log.actor_role,
            log.source,
            log.timestamp_utc,
            log.changes_json,
            log.context,
        ),
        secret,
    )
    return expected == log.integrity_hash


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id=None,
    action: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLog]:
    """Newest first."""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.timestamp_utc.desc()).offset(offset).limit(limit).all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """Changed keys only, as {"before": ..., "after": ...} pairs."""
    return {
        key: {"before": before.get(key), "after": after.get(key)}
        for key in sorted(set(before) | set(after))
        if before.get(key) != after.get(key)
    }
