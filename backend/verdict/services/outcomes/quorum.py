from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import update

from verdict import db
from verdict.models import DailyEvent, EventOutcome, OutcomeChallenge
from .clock import challenge_deadline, resolve_now, seconds_until, within_challenge_window
from .notifications import OUTCOME_APPROVED, OUTCOME_OVERTURNED, publish
from .roster import squad_member_count
from .scoring import apply_judge_penalty, award_judge_bonus


PENDING = 'pending'
APPROVED = 'approved'
OVERTURNED = 'overturned'


def quorum_reached(challenge_count: int, member_count: int) -> bool:
    """Strict majority: more than half the squad must object. Ties stand."""
    if member_count <= 0:
        return False
    return challenge_count * 2 > member_count


@dataclass
class OutcomeVerdict:
    state: str
    challenge_count: int
    member_count: int
    deadline: datetime
    # Set when this evaluation performed the transition (for notifications)
    newly_overturned: bool = False
    newly_approved: bool = False

    @property
    def overturned(self) -> bool:
        return self.state == OVERTURNED


def challenge_count(event_id: int, until: Optional[datetime] = None) -> int:
    query = db.session.query(OutcomeChallenge).filter_by(event_id=event_id)
    if until is not None:
        query = query.filter(OutcomeChallenge.created_at <= until)
    return query.count()


def _squad_id(outcome: EventOutcome) -> int:
    return db.session.query(DailyEvent.squad_id).filter(DailyEvent.id == outcome.event_id).scalar()


def lock_outcome(outcome: EventOutcome) -> EventOutcome:
    """Row-lock the outcome for the rest of the transaction and reload it.

    Every recount takes this lock first, so concurrent challenges and sweeps
    evaluate one after another and each sees the rows the previous one
    committed.
    """
    return (
        EventOutcome.query
        .filter_by(id=outcome.id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def mark_overturned(outcome: EventOutcome, now: Optional[datetime] = None) -> bool:
    """One-way false -> true flip; True only for the caller that flipped it."""
    now = resolve_now(now)
    result = db.session.execute(
        update(EventOutcome)
        .where(EventOutcome.id == outcome.id, EventOutcome.overturned.is_(False))
        .values(overturned=True, overturned_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(outcome)
    return result.rowcount == 1


def evaluate_in_transaction(outcome: EventOutcome, now: Optional[datetime] = None) -> OutcomeVerdict:
    """Lock, recount, compare, conditionally flip and score; the caller commits.

    Only challenges stamped on or before the deadline count. An outcome that
    held a majority inside the window is overturned even when it is first
    evaluated after the deadline.
    """
    now = resolve_now(now)
    outcome = lock_outcome(outcome)
    deadline = challenge_deadline(outcome.finalized_at)
    count = challenge_count(outcome.event_id, until=deadline)
    members = squad_member_count(_squad_id(outcome))

    if outcome.overturned:
        return OutcomeVerdict(OVERTURNED, count, members, deadline)
    if outcome.scored_at is not None:
        return OutcomeVerdict(APPROVED, count, members, deadline)

    open_window = within_challenge_window(now, outcome.finalized_at)
    if quorum_reached(count, members):
        flipped = mark_overturned(outcome, now)
        if flipped:
            apply_judge_penalty(outcome, now)
            current_app.logger.info(
                f"[overturn] event={outcome.event_id} challenges={count} members={members} late={not open_window}"
            )
        return OutcomeVerdict(OVERTURNED, count, members, deadline, newly_overturned=flipped)

    if not open_window:
        approved = award_judge_bonus(outcome, now)
        if approved:
            current_app.logger.info(
                f"[approve] event={outcome.event_id} challenges={count} members={members}"
            )
        state = OVERTURNED if outcome.overturned else APPROVED
        return OutcomeVerdict(state, count, members, deadline, newly_approved=approved)

    return OutcomeVerdict(PENDING, count, members, deadline)


def evaluate_outcome(outcome: EventOutcome, now: Optional[datetime] = None) -> OutcomeVerdict:
    """On-demand evaluation. Idempotent: re-running after a transition is a no-op."""
    verdict = evaluate_in_transaction(outcome, now)
    db.session.commit()
    if verdict.newly_overturned:
        publish(OUTCOME_OVERTURNED, outcome_payload(outcome, verdict))
    elif verdict.newly_approved:
        publish(OUTCOME_APPROVED, outcome_payload(outcome, verdict))
    return verdict


def outcome_payload(outcome: EventOutcome, verdict: OutcomeVerdict) -> dict:
    return {
        'event_id': outcome.event_id,
        'squad_id': _squad_id(outcome),
        'outcome_id': outcome.id,
        'judge_id': outcome.finalized_by,
        'state': verdict.state,
        'challenge_count': verdict.challenge_count,
        'member_count': verdict.member_count,
    }


def outcome_state(outcome: EventOutcome, now: Optional[datetime] = None) -> dict:
    """Read model for clients; resolves an expired outcome as a side effect."""
    now = resolve_now(now)
    verdict = evaluate_outcome(outcome, now)
    return {
        'outcome': outcome.to_dict(),
        'verdict': verdict.state,
        'challenge_count': verdict.challenge_count,
        'member_count': verdict.member_count,
        'challenge_deadline': verdict.deadline.isoformat() + 'Z',
        'seconds_until_deadline': seconds_until(now, verdict.deadline),
    }
