from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import SQLAlchemyError

from verdict import db
from verdict.errors import OutcomeError
from verdict.models import DailyEvent
from verdict.services.outcomes.challenges import get_outcome, list_challenges, submit_challenge
from verdict.services.outcomes.clock import seconds_until, utcnow
from verdict.services.outcomes.finalizer import finalize_outcome
from verdict.services.outcomes.lifecycle import (
    assign_judge,
    close_event,
    get_event,
    get_today_event,
    open_event,
    sync_status,
)
from verdict.services.outcomes.quorum import outcome_state
from verdict.services.outcomes.roster import squad_member_count
from verdict.services.outcomes.scoring import judge_points


events = Blueprint('events', __name__)


@events.errorhandler(OutcomeError)
def handle_outcome_error(exc: OutcomeError):
    return jsonify(exc.to_dict()), exc.status_code


@events.errorhandler(SQLAlchemyError)
def handle_store_error(exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception(f"[store-fail] {request.method} {request.path}")
    return jsonify({'error': 'Internal server error', 'code': 'internal_error'}), 500


def _int_field(data, key):
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _event_payload(event: DailyEvent) -> dict:
    """Event plus derived outcome state and countdowns for client rendering."""
    now = utcnow()
    cfg = current_app.config
    payload = event.to_dict()
    payload['seconds_until_open'] = seconds_until(now, event.opens_at)
    payload['seconds_until_close'] = seconds_until(now, event.closes_at)
    if event.status == 'scheduled':
        payload['poll_after_sec'] = int(cfg.get('POLL_BEFORE_OPEN_SEC', 30))
    elif event.status == 'open':
        payload['poll_after_sec'] = int(cfg.get('POLL_WHILE_OPEN_SEC', 5))
    else:
        payload['poll_after_sec'] = None

    outcome = get_outcome(event.id)
    if outcome is None:
        payload.update({
            'outcome': None,
            'verdict': None,
            'challenge_count': 0,
            'member_count': squad_member_count(event.squad_id),
            'challenge_deadline': None,
            'seconds_until_deadline': None,
        })
        return payload

    payload.update(outcome_state(outcome, now))
    return payload


@events.route('/squads/<int:squad_id>/today', methods=['GET'])
def get_today(squad_id):
    event = get_today_event(squad_id)
    if event is None:
        return jsonify({'event': None})
    return jsonify({'event': _event_payload(event)})


@events.route('/squads/<int:squad_id>/members/<int:user_id>/points', methods=['GET'])
def get_points(squad_id, user_id):
    return jsonify({'squad_id': squad_id, 'user_id': user_id, 'points': judge_points(user_id, squad_id)})


@events.route('/events/<int:event_id>', methods=['GET'])
def get_event_state(event_id):
    event = sync_status(get_event(event_id))
    return jsonify(_event_payload(event))


@events.route('/events/<int:event_id>/open', methods=['POST'])
def open_event_route(event_id):
    event = open_event(get_event(event_id))
    return jsonify(event.to_dict())


@events.route('/events/<int:event_id>/close', methods=['POST'])
def close_event_route(event_id):
    event = close_event(get_event(event_id))
    return jsonify(event.to_dict())


@events.route('/events/<int:event_id>/judge', methods=['POST'])
def assign_judge_route(event_id):
    data = request.get_json(silent=True) or {}
    user_id = _int_field(data, 'user_id')
    if user_id is None:
        return jsonify({'error': 'user_id is required'}), 400
    event = assign_judge(get_event(event_id), user_id)
    return jsonify(event.to_dict())


@events.route('/events/<int:event_id>/finalize', methods=['POST'])
def finalize_route(event_id):
    data = request.get_json(silent=True) or {}
    judge_id = _int_field(data, 'judge_id')
    if judge_id is None:
        return jsonify({'error': 'judge_id is required'}), 400
    payload = data.get('payload') or {}
    if not isinstance(payload, dict):
        return jsonify({'error': 'payload must be an object'}), 400
    outcome = finalize_outcome(event_id, judge_id, payload)
    return jsonify(outcome.to_dict()), 201


@events.route('/events/<int:event_id>/challenge', methods=['POST'])
def challenge_route(event_id):
    data = request.get_json(silent=True) or {}
    user_id = _int_field(data, 'user_id')
    if user_id is None:
        return jsonify({'error': 'user_id is required'}), 400
    challenge = submit_challenge(event_id, user_id)
    outcome = get_outcome(event_id)
    return jsonify({
        'challenge': challenge.to_dict(),
        'overturned': bool(outcome.overturned) if outcome else False,
    }), 201


@events.route('/events/<int:event_id>/challenges', methods=['GET'])
def list_challenges_route(event_id):
    get_event(event_id)
    return jsonify([c.to_dict() for c in list_challenges(event_id)])
