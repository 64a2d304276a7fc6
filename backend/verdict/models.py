from verdict import db
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


EVENT_TYPES = ('prediction_poll', 'live_capture', 'reaction_tap')

# Ordered: status may only move forward through this tuple
EVENT_STATUSES = ('scheduled', 'open', 'closed', 'finalized')


def _iso(value):
    return value.isoformat() + 'Z' if value else None


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    display_name = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
        }


class Squad(db.Model):
    __tablename__ = 'squad'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default='UTC')
    members = db.relationship('SquadMember', back_populates='squad', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'timezone': self.timezone,
        }


class SquadMember(db.Model):
    __tablename__ = 'squad_member'
    __table_args__ = (
        db.UniqueConstraint('squad_id', 'user_id', name='uq_squad_member_squad_user'),
    )
    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey('squad.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    joined_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    squad = db.relationship('Squad', back_populates='members')
    user = db.relationship('User')


class DailyEvent(db.Model):
    __tablename__ = 'daily_events'
    __table_args__ = (
        db.UniqueConstraint('squad_id', 'date', name='uq_daily_events_squad_date'),
    )
    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey('squad.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    event_type = db.Column(db.String(32), nullable=False)
    opens_at = db.Column(db.DateTime, nullable=False, index=True)
    closes_at = db.Column(db.DateTime, nullable=False)
    judge_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    status = db.Column(db.String(16), nullable=False, default='scheduled', index=True)
    poll_question = db.Column(db.Text, nullable=True)
    poll_options = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    outcome = db.relationship('EventOutcome', back_populates='event', uselist=False)

    def to_dict(self):
        return {
            'id': self.id,
            'squad_id': self.squad_id,
            'date': self.date.isoformat() if self.date else None,
            'event_type': self.event_type,
            'opens_at': _iso(self.opens_at),
            'closes_at': _iso(self.closes_at),
            'judge_id': self.judge_id,
            'status': self.status,
            'poll_question': self.poll_question,
            'poll_options': self.poll_options,
        }


class EventOutcome(db.Model):
    __tablename__ = 'event_outcomes'
    id = db.Column(db.Integer, primary_key=True)
    # Unique: a second finalize for the same event fails at insert time
    event_id = db.Column(db.Integer, db.ForeignKey('daily_events.id'), nullable=False, unique=True)
    finalized_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    finalized_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    overturned = db.Column(db.Boolean, nullable=False, default=False)
    overturned_at = db.Column(db.DateTime, nullable=True)
    # Processed-flag for the judge's point delta; set exactly once
    judge_points_delta = db.Column(db.Integer, nullable=True)
    scored_at = db.Column(db.DateTime, nullable=True)
    event = db.relationship('DailyEvent', back_populates='outcome')

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'finalized_by': self.finalized_by,
            'payload': self.payload,
            'finalized_at': _iso(self.finalized_at),
            'overturned': bool(self.overturned),
            'overturned_at': _iso(self.overturned_at),
            'judge_points_delta': self.judge_points_delta,
        }


class OutcomeChallenge(db.Model):
    __tablename__ = 'outcome_challenges'
    __table_args__ = (
        db.UniqueConstraint('event_id', 'user_id', name='uq_outcome_challenges_event_user'),
    )
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('daily_events.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'user_id': self.user_id,
            'created_at': _iso(self.created_at),
        }


class UserStats(db.Model):
    __tablename__ = 'user_stats'
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey('squad.id'), primary_key=True)
    points_weekly = db.Column(db.Integer, nullable=False, default=0)
    points_lifetime = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'squad_id': self.squad_id,
            'points_weekly': self.points_weekly,
            'points_lifetime': self.points_lifetime,
        }
