from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from verdict import db, socketio
from verdict.models import EventOutcome
from .clock import challenge_window, resolve_now
from .lifecycle import close_due_events, open_due_events
from .quorum import evaluate_outcome


_sweeper_state = {'running': False, 'stop': False}


def sweep_expired_outcomes(now: Optional[datetime] = None) -> List[int]:
    """Resolve every unscored outcome whose dispute window has passed.

    Without this sweep an expired outcome is only resolved when something
    next touches it (a read or a late challenge attempt). It overturns instead
    when the challenges stamped inside the window hold a majority.
    """
    now = resolve_now(now)
    cutoff = now - challenge_window()
    expired = (
        EventOutcome.query
        .filter(
            EventOutcome.overturned.is_(False),
            EventOutcome.scored_at.is_(None),
            EventOutcome.finalized_at < cutoff,
        )
        .order_by(EventOutcome.finalized_at)
        .all()
    )
    resolved = []
    for outcome in expired:
        verdict = evaluate_outcome(outcome, now)
        if verdict.newly_approved or verdict.newly_overturned:
            resolved.append(outcome.event_id)
    return resolved


def run_maintenance(now: Optional[datetime] = None) -> Dict[str, List[int]]:
    now = resolve_now(now)
    summary = {
        'opened': open_due_events(now),
        'closed': close_due_events(now),
        'resolved': sweep_expired_outcomes(now),
    }
    if any(summary.values()):
        current_app.logger.info(
            f"[sweep] opened={summary['opened']} closed={summary['closed']} resolved={summary['resolved']}"
        )
    return summary


def start_deadline_sweeper(app) -> bool:
    """Start the periodic lifecycle / deadline sweep for this process.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - No-ops when SWEEP_INTERVAL_SEC is 0
    - Ensures a single sweeper per process
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False
    interval = int(app.config.get('SWEEP_INTERVAL_SEC', 60))
    if interval <= 0:
        app.logger.info('[sweep] disabled (SWEEP_INTERVAL_SEC=0)')
        return False
    if _sweeper_state['running']:
        app.logger.info('[sweep-skip] sweeper already running')
        return False

    _sweeper_state.update(running=True, stop=False)

    def _worker(delay: int):
        app.logger.info(f"[sweep-start] interval={delay}s")
        try:
            while not _sweeper_state['stop']:
                socketio.sleep(delay)
                if _sweeper_state['stop']:
                    break
                with app.app_context():
                    try:
                        run_maintenance()
                    except SQLAlchemyError:
                        db.session.rollback()
                        app.logger.exception('[sweep-fail] store error, retrying next interval')
        finally:
            _sweeper_state['running'] = False
            app.logger.info('[sweep-stop]')

    socketio.start_background_task(_worker, interval)
    return True


def stop_deadline_sweeper() -> None:
    _sweeper_state['stop'] = True
