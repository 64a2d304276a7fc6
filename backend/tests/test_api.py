from datetime import timedelta

import pytest

from verdict import db
from verdict.models import EventOutcome
from verdict.services.outcomes.clock import utcnow


@pytest.fixture()
def closed_event(make_squad, make_event):
    """A closed event (judge = first member) that ended a few minutes ago."""
    def _make(size=4):
        squad_id, members = make_squad(size)
        now = utcnow()
        event = make_event(squad_id, judge_id=members[0], status='closed',
                           opens_at=now - timedelta(minutes=30), closes_at=now - timedelta(minutes=25),
                           event_date=now.date())
        return event, members
    return _make


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok'}


def test_today_without_event(client, make_squad):
    squad_id, _ = make_squad(3)
    res = client.get(f'/api/squads/{squad_id}/today')
    assert res.status_code == 200
    assert res.get_json() == {'event': None}


def test_today_reports_countdown_and_poll_interval(client, make_squad, make_event):
    squad_id, members = make_squad(3)
    now = utcnow()
    make_event(squad_id, judge_id=members[0], status='scheduled',
               opens_at=now + timedelta(hours=1), event_date=now.date())

    body = client.get(f'/api/squads/{squad_id}/today').get_json()['event']
    assert body['status'] == 'scheduled'
    assert body['poll_after_sec'] == 30
    assert 3500 < body['seconds_until_open'] <= 3600
    assert body['outcome'] is None
    assert body['member_count'] == 3


def test_finalize_then_challenge(client, closed_event):
    event, members = closed_event(size=4)

    res = client.post(f'/api/events/{event.id}/finalize',
                      json={'judge_id': members[0], 'payload': {'winner': members[1]}})
    assert res.status_code == 201
    outcome = res.get_json()
    assert outcome['event_id'] == event.id
    assert outcome['payload'] == {'winner': members[1]}
    assert outcome['overturned'] is False

    res = client.post(f'/api/events/{event.id}/challenge', json={'user_id': members[1]})
    assert res.status_code == 201
    body = res.get_json()
    assert body['challenge']['user_id'] == members[1]
    assert body['overturned'] is False

    state = client.get(f'/api/events/{event.id}').get_json()
    assert state['status'] == 'finalized'
    assert state['verdict'] == 'pending'
    assert state['challenge_count'] == 1
    assert state['member_count'] == 4
    assert 0 < state['seconds_until_deadline'] <= 3600

    listed = client.get(f'/api/events/{event.id}/challenges').get_json()
    assert [c['user_id'] for c in listed] == [members[1]]


def test_majority_overturn_over_http(client, closed_event):
    event, members = closed_event(size=4)
    client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0], 'payload': {}})

    flags = [
        client.post(f'/api/events/{event.id}/challenge', json={'user_id': uid}).get_json()['overturned']
        for uid in members[1:]
    ]
    assert flags == [False, False, True]

    points = client.get(f'/api/squads/{event.squad_id}/members/{members[0]}/points').get_json()
    assert points['points'] == -10


def test_finalize_error_codes(client, closed_event):
    event, members = closed_event()

    res = client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[1]})
    assert res.status_code == 403
    assert res.get_json()['code'] == 'not_judge'

    assert client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0]}).status_code == 201
    res = client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0]})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'already_finalized'

    res = client.post('/api/events/9999/finalize', json={'judge_id': members[0]})
    assert res.status_code == 404
    assert res.get_json()['code'] == 'event_not_found'


def test_finalize_before_close(client, make_squad, make_event):
    squad_id, members = make_squad(3)
    now = utcnow()
    event = make_event(squad_id, judge_id=members[0], status='open',
                       opens_at=now - timedelta(minutes=1), closes_at=now + timedelta(minutes=4),
                       event_date=now.date())

    res = client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0]})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'event_not_closed'


def test_challenge_error_codes(client, closed_event, make_squad):
    event, members = closed_event(size=5)
    _, outsiders = make_squad(1, name='Outside')

    res = client.post(f'/api/events/{event.id}/challenge', json={'user_id': members[1]})
    assert res.status_code == 404
    assert res.get_json()['code'] == 'outcome_not_found'

    client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0]})
    client.post(f'/api/events/{event.id}/challenge', json={'user_id': members[1]})

    cases = [
        (members[1], 409, 'already_challenged'),
        (members[0], 403, 'judge_cannot_challenge'),
        (outsiders[0], 403, 'not_squad_member'),
    ]
    for user_id, status, code in cases:
        res = client.post(f'/api/events/{event.id}/challenge', json={'user_id': user_id})
        assert res.status_code == status
        assert res.get_json()['code'] == code


def test_expired_window_returns_gone_and_approves(client, closed_event):
    event, members = closed_event()
    finalized_at = utcnow() - timedelta(hours=2)
    db.session.add(EventOutcome(event_id=event.id, finalized_by=members[0], payload={}, finalized_at=finalized_at))
    event.status = 'finalized'
    db.session.commit()

    res = client.post(f'/api/events/{event.id}/challenge', json={'user_id': members[2]})
    assert res.status_code == 410
    body = res.get_json()
    assert body['code'] == 'challenge_window_expired'
    assert body['context']['deadline'] == (finalized_at + timedelta(hours=1)).isoformat() + 'Z'

    state = client.get(f'/api/events/{event.id}').get_json()
    assert state['verdict'] == 'approved'
    assert state['seconds_until_deadline'] == 0
    points = client.get(f'/api/squads/{event.squad_id}/members/{members[0]}/points').get_json()
    assert points['points'] == 10


@pytest.mark.parametrize('path, body', [
    ('finalize', {}),
    ('finalize', {'judge_id': 'abc'}),
    ('challenge', {}),
    ('judge', {'user_id': None}),
])
def test_missing_fields_return_400(client, closed_event, path, body):
    event, _ = closed_event()
    res = client.post(f'/api/events/{event.id}/{path}', json=body)
    assert res.status_code == 400


def test_finalize_rejects_non_object_payload(client, closed_event):
    event, members = closed_event()
    res = client.post(f'/api/events/{event.id}/finalize', json={'judge_id': members[0], 'payload': [1, 2]})
    assert res.status_code == 400


def test_open_close_and_judge_routes(client, make_squad, make_event):
    squad_id, members = make_squad(3)
    now = utcnow()
    event = make_event(squad_id, status='scheduled', opens_at=now - timedelta(minutes=10),
                       closes_at=now - timedelta(minutes=5), event_date=now.date())

    res = client.post(f'/api/events/{event.id}/judge', json={'user_id': members[2]})
    assert res.status_code == 200
    assert res.get_json()['judge_id'] == members[2]

    assert client.post(f'/api/events/{event.id}/open').get_json()['status'] == 'open'
    assert client.post(f'/api/events/{event.id}/close').get_json()['status'] == 'closed'


def test_open_too_early_is_rejected(client, make_squad, make_event):
    squad_id, _ = make_squad(2)
    now = utcnow()
    event = make_event(squad_id, status='scheduled', opens_at=now + timedelta(hours=3), event_date=now.date())

    res = client.post(f'/api/events/{event.id}/open')
    assert res.status_code == 409
    assert res.get_json()['code'] == 'invalid_transition'
