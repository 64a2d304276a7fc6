from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from verdict import db
from verdict.errors import (
    AlreadyChallenged,
    ChallengeWindowExpired,
    JudgeCannotChallenge,
    NotSquadMember,
    OutcomeAlreadyOverturned,
    OutcomeNotFound,
)
from verdict.models import DailyEvent, EventOutcome, OutcomeChallenge
from .clock import challenge_deadline, resolve_now, within_challenge_window
from .notifications import OUTCOME_OVERTURNED, publish
from .quorum import evaluate_in_transaction, evaluate_outcome, lock_outcome, outcome_payload
from .roster import is_squad_member


def get_outcome(event_id: int) -> Optional[EventOutcome]:
    return EventOutcome.query.filter_by(event_id=event_id).first()


def list_challenges(event_id: int) -> List[OutcomeChallenge]:
    return OutcomeChallenge.query.filter_by(event_id=event_id).order_by(OutcomeChallenge.created_at, OutcomeChallenge.id).all()


def _already_challenged(event_id: int, user_id: int) -> bool:
    return db.session.query(OutcomeChallenge.id).filter_by(event_id=event_id, user_id=user_id).first() is not None


def submit_challenge(event_id: int, user_id: int, now: Optional[datetime] = None) -> OutcomeChallenge:
    """Record one member's objection and re-evaluate quorum in the same transaction.

    The outcome row is locked before the insert, so concurrent challenges
    recount one at a time and the one that crosses the threshold sees every
    earlier row. Insert, recount, compare and the conditional ``overturned``
    flip commit together. Duplicate submissions from one user are rejected
    by the unique ``(event_id, user_id)`` index, not by the pre-checks.
    """
    now = resolve_now(now)
    outcome = get_outcome(event_id)
    if outcome is None:
        raise OutcomeNotFound(event_id=event_id)
    if outcome.overturned:
        raise OutcomeAlreadyOverturned(event_id=event_id)
    if user_id == outcome.finalized_by:
        raise JudgeCannotChallenge(event_id=event_id)

    squad_id = db.session.query(DailyEvent.squad_id).filter(DailyEvent.id == event_id).scalar()
    if not is_squad_member(squad_id, user_id):
        raise NotSquadMember(squad_id=squad_id, user_id=user_id)

    if not within_challenge_window(now, outcome.finalized_at):
        # Touching an expired outcome resolves it (approval by default)
        evaluate_outcome(outcome, now)
        raise ChallengeWindowExpired(
            event_id=event_id,
            deadline=challenge_deadline(outcome.finalized_at).isoformat() + 'Z',
        )

    outcome = lock_outcome(outcome)
    if outcome.overturned:
        db.session.rollback()
        raise OutcomeAlreadyOverturned(event_id=event_id)

    challenge = OutcomeChallenge(event_id=event_id, user_id=user_id, created_at=now)
    db.session.add(challenge)
    try:
        db.session.flush()
        verdict = evaluate_in_transaction(outcome, now)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if _already_challenged(event_id, user_id):
            current_app.logger.info(f"[challenge-dup] event={event_id} user={user_id}")
            raise AlreadyChallenged(event_id=event_id)
        raise

    current_app.logger.info(
        f"[challenge] event={event_id} user={user_id} count={verdict.challenge_count} members={verdict.member_count} state={verdict.state}"
    )
    if verdict.newly_overturned:
        publish(OUTCOME_OVERTURNED, outcome_payload(outcome, verdict))
    return challenge
