# Overview: Append-only batch timeline; written inside the transition's own transaction.

from __future__ import annotations

import json

from ..extensions import db
from ..errors import ValidationError
from ..models import Batch, BatchTimelineEvent, TIMELINE_EVENT_TYPES
from .tenant_service import TenantContext, get_owned, tenant_scoped


def append_timeline_event(
    ctx: TenantContext,
    batch_id: int,
    event_type: str,
    title: str,
    *,
    description: str | None = None,
    payload: dict | None = None,
) -> BatchTimelineEvent:
    """
    Record one lifecycle event. Flushes, never commits.

    payload is stored as JSON; Decimals are written as strings.
    """
    if event_type not in TIMELINE_EVENT_TYPES:
        raise ValidationError(f"Invalid timeline event type '{event_type}'")

    event = BatchTimelineEvent(
        tenant_id=ctx.tenant_id,
        batch_id=batch_id,
        type=event_type,
        title=title,
        description=description,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
        created_by=ctx.actor,
    )
    db.session.add(event)
    db.session.flush()
    return event


def list_timeline(ctx: TenantContext, batch_id: int) -> list[BatchTimelineEvent]:
    get_owned(ctx, Batch, batch_id, label="Batch")
    return (
        tenant_scoped(ctx, BatchTimelineEvent)
        .filter(BatchTimelineEvent.batch_id == batch_id)
        .order_by(BatchTimelineEvent.created_at, BatchTimelineEvent.id)
        .all()
    )
