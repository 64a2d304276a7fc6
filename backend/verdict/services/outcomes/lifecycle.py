import random
from datetime import date as date_cls, datetime, time as time_cls, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from verdict import db
from verdict.errors import EventAlreadyScheduled, EventNotFound, InvalidTransition, NotSquadMember
from verdict.models import DailyEvent, EVENT_STATUSES, EVENT_TYPES, Squad
from .clock import has_elapsed, resolve_now, to_utc
from .roster import is_squad_member, pick_random_judge


POLL_BANK = [
    ('What would you rather do this weekend?',
     ['Stay home and relax', 'Go on an adventure', 'Hang out with friends', 'Learn something new']),
    ('Morning person or night owl?',
     ['Definitely morning', 'More morning', 'More night', 'Definitely night owl']),
    ('Would you rather have unlimited money or unlimited time?',
     ['Money', 'Time', 'A balance of both', 'Neither matters']),
    ('How do you recharge after a long day?',
     ['Exercise', 'Netflix/gaming', 'Reading', 'Socializing']),
]


def status_rank(status: str) -> int:
    return EVENT_STATUSES.index(status)


def get_event(event_id: int) -> DailyEvent:
    event = db.session.get(DailyEvent, event_id)
    if event is None:
        raise EventNotFound(event_id=event_id)
    return event


def _advance(event: DailyEvent, from_status: str, to_status: str) -> bool:
    """Compare-and-set the status; returns False if another writer moved it first."""
    result = db.session.execute(
        update(DailyEvent)
        .where(DailyEvent.id == event.id, DailyEvent.status == from_status)
        .values(status=to_status)
    )
    db.session.refresh(event)
    moved = result.rowcount == 1
    if moved:
        current_app.logger.info(f"[transition] event={event.id} {from_status} -> {to_status}")
    return moved


def open_event(event: DailyEvent, now: Optional[datetime] = None) -> DailyEvent:
    now = resolve_now(now)
    if status_rank(event.status) >= status_rank('open'):
        return event
    if not has_elapsed(now, event.opens_at):
        raise InvalidTransition('Event is not open yet', event_id=event.id, status=event.status)
    _advance(event, 'scheduled', 'open')
    db.session.commit()
    return event


def close_event(event: DailyEvent, now: Optional[datetime] = None) -> DailyEvent:
    now = resolve_now(now)
    if status_rank(event.status) >= status_rank('closed'):
        return event
    if event.status != 'open':
        raise InvalidTransition('Event must be open before it can close', event_id=event.id, status=event.status)
    if not has_elapsed(now, event.closes_at):
        raise InvalidTransition('Event is still running', event_id=event.id, status=event.status)
    _advance(event, 'open', 'closed')
    db.session.commit()
    return event


def mark_finalized(event: DailyEvent) -> bool:
    """closed -> finalized inside the caller's transaction (no commit)."""
    if event.status == 'finalized':
        return False
    if event.status != 'closed':
        raise InvalidTransition('Only a closed event can be finalized', event_id=event.id, status=event.status)
    return _advance(event, 'closed', 'finalized')


def sync_status(event: DailyEvent, now: Optional[datetime] = None, commit: bool = True) -> DailyEvent:
    """Advance the event as far as the clock allows; never raises on timing."""
    now = resolve_now(now)
    changed = False
    if event.status == 'scheduled' and has_elapsed(now, event.opens_at):
        changed = _advance(event, 'scheduled', 'open') or changed
    if event.status == 'open' and has_elapsed(now, event.closes_at):
        changed = _advance(event, 'open', 'closed') or changed
    if changed and commit:
        db.session.commit()
    return event


def get_today_event(squad_id: int, today: Optional[date_cls] = None, now: Optional[datetime] = None) -> Optional[DailyEvent]:
    now = resolve_now(now)
    today = today or now.date()
    event = DailyEvent.query.filter_by(squad_id=squad_id, date=today).first()
    if event is None:
        return None
    return sync_status(event, now)


def _event_exists(squad_id: int, event_date: date_cls) -> bool:
    return DailyEvent.query.filter_by(squad_id=squad_id, date=event_date).first() is not None


def create_daily_event(
    squad_id: int,
    event_date: date_cls,
    event_type: str,
    opens_at: datetime,
    closes_at: datetime,
    judge_id: Optional[int] = None,
    poll_question: Optional[str] = None,
    poll_options: Optional[List[str]] = None,
) -> DailyEvent:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}")
    opens_at, closes_at = to_utc(opens_at), to_utc(closes_at)
    if closes_at <= opens_at:
        raise ValueError('closes_at must be after opens_at')

    event = DailyEvent(
        squad_id=squad_id,
        date=event_date,
        event_type=event_type,
        opens_at=opens_at,
        closes_at=closes_at,
        judge_id=judge_id,
        status='scheduled',
        poll_question=poll_question,
        poll_options=poll_options,
    )
    db.session.add(event)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if _event_exists(squad_id, event_date):
            raise EventAlreadyScheduled(squad_id=squad_id, date=event_date.isoformat())
        raise
    current_app.logger.info(
        f"[rollover] squad={squad_id} date={event_date} event={event.id} type={event_type} judge={judge_id}"
    )
    return event


def _local_open_time(squad: Squad, event_date: date_cls, rng: random.Random) -> datetime:
    cfg = current_app.config
    earliest = int(cfg.get('EVENT_EARLIEST_HOUR', 8))
    latest = int(cfg.get('EVENT_LATEST_HOUR', 21))
    try:
        tz = ZoneInfo(squad.timezone or 'UTC')
    except ZoneInfoNotFoundError:
        current_app.logger.warning(f"[rollover] squad={squad.id} unknown timezone={squad.timezone!r}, using UTC")
        tz = ZoneInfo('UTC')
    local = datetime.combine(event_date, time_cls(rng.randint(earliest, latest), rng.randint(0, 59)), tzinfo=tz)
    return to_utc(local)


def generate_daily_events(
    today: Optional[date_cls] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> List[DailyEvent]:
    """Daily rollover: one event per squad that has none for ``today`` yet."""
    rng = rng or random.Random()
    today = today or resolve_now(now).date()
    duration = timedelta(minutes=int(current_app.config.get('EVENT_DURATION_MIN', 5)))

    created = []
    for squad in Squad.query.order_by(Squad.id).all():
        if _event_exists(squad.id, today):
            current_app.logger.info(f"[rollover-skip] squad={squad.id} date={today} already has an event")
            continue
        event_type = rng.choice(EVENT_TYPES)
        opens_at = _local_open_time(squad, today, rng)
        question, options = (None, None)
        if event_type == 'prediction_poll':
            question, options = rng.choice(POLL_BANK)
        try:
            created.append(create_daily_event(
                squad_id=squad.id,
                event_date=today,
                event_type=event_type,
                opens_at=opens_at,
                closes_at=opens_at + duration,
                judge_id=pick_random_judge(squad.id, rng),
                poll_question=question,
                poll_options=list(options) if options else None,
            ))
        except EventAlreadyScheduled:
            # Another rollover run won the insert
            continue
    return created


def assign_judge(event: DailyEvent, user_id: int) -> DailyEvent:
    if event.status == 'finalized':
        raise InvalidTransition('Judge cannot change after finalization', event_id=event.id, status=event.status)
    if not is_squad_member(event.squad_id, user_id):
        raise NotSquadMember(squad_id=event.squad_id, user_id=user_id)
    event.judge_id = user_id
    db.session.add(event)
    db.session.commit()
    current_app.logger.info(f"[judge] event={event.id} judge={user_id}")
    return event


def open_due_events(now: Optional[datetime] = None) -> List[int]:
    now = resolve_now(now)
    due = DailyEvent.query.filter(DailyEvent.status == 'scheduled', DailyEvent.opens_at <= now).all()
    opened = [e.id for e in due if _advance(e, 'scheduled', 'open')]
    db.session.commit()
    return opened


def close_due_events(now: Optional[datetime] = None) -> List[int]:
    now = resolve_now(now)
    due = DailyEvent.query.filter(DailyEvent.status == 'open', DailyEvent.closes_at <= now).all()
    closed = [e.id for e in due if _advance(e, 'open', 'closed')]
    db.session.commit()
    return closed
