from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from verdict import db
from verdict.errors import AlreadyFinalized, EventNotClosed, NotJudge
from verdict.models import EventOutcome
from .clock import challenge_deadline, resolve_now
from .lifecycle import get_event, mark_finalized, sync_status
from .notifications import OUTCOME_FINALIZED, publish
from .quorum import PENDING


def _outcome_exists(event_id: int) -> bool:
    return db.session.query(EventOutcome.id).filter_by(event_id=event_id).first() is not None


def finalize_outcome(
    event_id: int,
    caller_id: int,
    payload: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> EventOutcome:
    """Stamp the single authoritative outcome onto a closed event.

    The unique index on ``event_outcomes.event_id`` is the mutual exclusion:
    when two judges' requests race, both may pass the status check but only
    one insert commits; the other gets ``AlreadyFinalized``.
    """
    now = resolve_now(now)
    event = get_event(event_id)
    sync_status(event, now)

    if event.judge_id is None or event.judge_id != caller_id:
        raise NotJudge(event_id=event.id, caller_id=caller_id)
    if event.status == 'finalized':
        raise AlreadyFinalized(event_id=event.id)
    if event.status != 'closed':
        raise EventNotClosed(event_id=event.id, status=event.status)

    outcome = EventOutcome(
        event_id=event.id,
        finalized_by=caller_id,
        payload=payload or {},
        finalized_at=now,
        overturned=False,
    )
    db.session.add(outcome)
    try:
        db.session.flush()
        mark_finalized(event)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if _outcome_exists(event_id):
            current_app.logger.info(f"[finalize-race] event={event_id} caller={caller_id} lost")
            raise AlreadyFinalized(event_id=event_id)
        raise

    current_app.logger.info(f"[finalize] event={event.id} judge={caller_id} outcome={outcome.id}")
    publish(OUTCOME_FINALIZED, {
        'event_id': event.id,
        'squad_id': event.squad_id,
        'outcome_id': outcome.id,
        'judge_id': caller_id,
        'state': PENDING,
        'challenge_deadline': challenge_deadline(outcome.finalized_at).isoformat() + 'Z',
    })
    return outcome
