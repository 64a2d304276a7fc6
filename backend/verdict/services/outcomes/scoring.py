from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import update

from verdict import db
from verdict.models import DailyEvent, EventOutcome, UserStats
from .clock import resolve_now


def _credit(user_id: int, squad_id: int, delta: int) -> None:
    stats = db.session.get(UserStats, (user_id, squad_id))
    if stats is None:
        stats = UserStats(user_id=user_id, squad_id=squad_id, points_weekly=0, points_lifetime=0)
        db.session.add(stats)
        db.session.flush()
    db.session.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id, UserStats.squad_id == squad_id)
        .values(
            points_weekly=UserStats.points_weekly + delta,
            points_lifetime=UserStats.points_lifetime + delta,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.expire(stats)


def apply_judge_score(outcome: EventOutcome, delta: int, now: Optional[datetime] = None, require_standing: bool = False) -> bool:
    """Apply the judge's point delta for this outcome at most once.

    Claims the outcome's processed-flag with a conditional update; only the
    caller that flips ``scored_at`` from NULL touches the points ledger, so
    repeated evaluations (per challenge, per read, per sweep) are harmless.
    With ``require_standing`` the claim also requires the outcome to still be
    un-overturned, which keeps a late approval from racing an overturn.

    Runs inside the caller's transaction; the caller commits.
    """
    now = resolve_now(now)
    criteria = [EventOutcome.id == outcome.id, EventOutcome.scored_at.is_(None)]
    if require_standing:
        criteria.append(EventOutcome.overturned.is_(False))
    result = db.session.execute(
        update(EventOutcome)
        .where(*criteria)
        .values(scored_at=now, judge_points_delta=delta)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(outcome)
    if result.rowcount != 1:
        return False

    squad_id = db.session.query(DailyEvent.squad_id).filter(DailyEvent.id == outcome.event_id).scalar()
    _credit(outcome.finalized_by, squad_id, delta)
    current_app.logger.info(
        f"[score] event={outcome.event_id} judge={outcome.finalized_by} delta={delta:+d}"
    )
    return True


def award_judge_bonus(outcome: EventOutcome, now: Optional[datetime] = None) -> bool:
    points = int(current_app.config.get('JUDGE_BONUS_POINTS', 10))
    return apply_judge_score(outcome, points, now=now, require_standing=True)


def apply_judge_penalty(outcome: EventOutcome, now: Optional[datetime] = None) -> bool:
    points = int(current_app.config.get('JUDGE_PENALTY_POINTS', 10))
    return apply_judge_score(outcome, -points, now=now)


def judge_points(user_id: int, squad_id: int) -> int:
    stats = db.session.get(UserStats, (user_id, squad_id))
    return stats.points_lifetime if stats else 0
