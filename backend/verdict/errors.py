"""Business error taxonomy for the event / outcome / challenge protocol.

Every error here is an expected, recoverable result of a request: the
HTTP layer maps each one to its own status code and machine-readable
``code`` so clients can show a specific message. Infrastructure failures
are not part of this hierarchy and surface as plain 500s.
"""


class OutcomeError(Exception):
    code = 'outcome_error'
    status_code = 400
    message = 'Request could not be completed'

    def __init__(self, message=None, **context):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.context = context

    def to_dict(self):
        data = {'error': self.message, 'code': self.code}
        if self.context:
            data['context'] = self.context
        return data


class EventNotFound(OutcomeError):
    code = 'event_not_found'
    status_code = 404
    message = 'Event not found'


class EventAlreadyScheduled(OutcomeError):
    code = 'event_already_scheduled'
    status_code = 409
    message = 'This squad already has an event for that date'


class InvalidTransition(OutcomeError):
    code = 'invalid_transition'
    status_code = 409
    message = 'Event cannot move to that status now'


class NotJudge(OutcomeError):
    code = 'not_judge'
    status_code = 403
    message = "Only today's judge can finalize this event"


class EventNotClosed(OutcomeError):
    code = 'event_not_closed'
    status_code = 409
    message = 'The event has not closed yet'


class AlreadyFinalized(OutcomeError):
    code = 'already_finalized'
    status_code = 409
    message = 'This event has already been finalized'


class OutcomeNotFound(OutcomeError):
    code = 'outcome_not_found'
    status_code = 404
    message = 'No outcome has been finalized for this event yet'


class AlreadyChallenged(OutcomeError):
    code = 'already_challenged'
    status_code = 409
    message = 'You have already challenged this outcome'


class ChallengeWindowExpired(OutcomeError):
    code = 'challenge_window_expired'
    status_code = 410
    message = 'The challenge window for this outcome has closed'


class OutcomeAlreadyOverturned(OutcomeError):
    code = 'outcome_already_overturned'
    status_code = 409
    message = 'This outcome has already been overturned'


class JudgeCannotChallenge(OutcomeError):
    code = 'judge_cannot_challenge'
    status_code = 403
    message = 'The judge cannot challenge their own outcome'


class NotSquadMember(OutcomeError):
    code = 'not_squad_member'
    status_code = 403
    message = 'User is not a member of this squad'
