"""Append-only audit trail for engine events."""

from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session

from retail_ledger.actor import ActorContext
from retail_ledger.models.audit_log import AuditLog


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def record_event(
    db: Session,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor: ActorContext,
    **details,
) -> AuditLog:
    entry = AuditLog(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor.user_id,
        details={key: _jsonable(value) for key, value in details.items()},
    )
    db.add(entry)
    return entry
