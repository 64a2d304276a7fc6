import os
import sys
from datetime import datetime, timedelta
import pytest

# Ensure the backend root (containing the `verdict` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from verdict import create_app, db, socketio
from verdict.models import DailyEvent, Squad, SquadMember, User
from verdict.services.outcomes import notifications
from verdict.services.outcomes.finalizer import finalize_outcome


# Fixed reference clock for service-level tests
T0 = datetime(2026, 5, 1, 12, 0, 0)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost']
    CHALLENGE_WINDOW_SEC = 3600
    JUDGE_BONUS_POINTS = 10
    JUDGE_PENALTY_POINTS = 10
    SWEEP_INTERVAL_SEC = 0
    EVENT_DURATION_MIN = 5
    EVENT_EARLIEST_HOUR = 8
    EVENT_LATEST_HOUR = 21
    POLL_BEFORE_OPEN_SEC = 30
    POLL_WHILE_OPEN_SEC = 5


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import verdict.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
    notifications.clear_listeners()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_squad(flask_app):
    """Create a squad with ``size`` members; returns (squad_id, [user_ids])."""
    def _make(size=6, name='Squad', timezone='UTC'):
        squad = Squad(name=name, timezone=timezone)
        db.session.add(squad)
        db.session.flush()
        user_ids = []
        for i in range(size):
            user = User(display_name=f'{name}-{i + 1}')
            db.session.add(user)
            db.session.flush()
            db.session.add(SquadMember(squad_id=squad.id, user_id=user.id))
            user_ids.append(user.id)
        db.session.commit()
        return squad.id, user_ids
    return _make


@pytest.fixture()
def make_event(flask_app):
    def _make(squad_id, judge_id=None, status='closed', opens_at=None, closes_at=None,
              event_date=None, event_type='prediction_poll'):
        opens_at = opens_at or (T0 - timedelta(hours=1))
        closes_at = closes_at or (opens_at + timedelta(minutes=5))
        event = DailyEvent(
            squad_id=squad_id,
            date=event_date or opens_at.date(),
            event_type=event_type,
            opens_at=opens_at,
            closes_at=closes_at,
            judge_id=judge_id,
            status=status,
        )
        db.session.add(event)
        db.session.commit()
        return event
    return _make


@pytest.fixture()
def finalized(make_squad, make_event):
    """Squad of ``size`` whose judge (first member) finalized at ``at``.

    Returns (event, outcome, judge_id, other_member_ids).
    """
    def _make(size=6, at=T0):
        squad_id, members = make_squad(size)
        judge_id = members[0]
        event = make_event(squad_id, judge_id=judge_id)
        outcome = finalize_outcome(event.id, judge_id, {'winner': members[1]}, now=at)
        return event, outcome, judge_id, members[1:]
    return _make
