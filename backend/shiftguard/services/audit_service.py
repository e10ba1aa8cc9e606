# Overview: Append-only audit events for the shift core.

from __future__ import annotations

from typing import Any, Optional

from ..extensions import db
from ..models import AuditEvent
from ..time_utils import now_ms


def append_audit_event(
    *,
    business_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    shift_id: int | None = None,
    occurred_at: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Append an audit event in the caller's transaction.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    ev = AuditEvent(
        business_id=business_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        shift_id=shift_id,
        occurred_at=occurred_at if occurred_at is not None else now_ms(),
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def get_audit_events(
    *,
    business_id: int,
    shift_id: int | None = None,
    event_type: str | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent).filter(AuditEvent.business_id == business_id)
    if shift_id is not None:
        query = query.filter(AuditEvent.shift_id == shift_id)
    if event_type:
        query = query.filter(AuditEvent.event_type == event_type)
    return query.order_by(AuditEvent.occurred_at.asc(), AuditEvent.id.asc()).limit(limit).all()
