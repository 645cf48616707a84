"""
Error taxonomy for quiz lifecycle, access and submission operations.

Every error carries the HTTP status it maps to and a JSON-ready payload,
so routes can surface it synchronously with enough context for the
caller to retry or confirm.
"""
from datetime import datetime
from typing import Optional


class QuizHubError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        payload = {'success': False, 'error': self.message}
        if self.reason:
            payload['reason'] = self.reason
        return payload


class ValidationError(QuizHubError):
    """Malformed quiz, question or answer payload."""

    status_code = 400


class NotFoundError(QuizHubError):
    """A quiz or attempt id does not resolve."""

    status_code = 404


class StateConflictError(QuizHubError):
    """
    The operation conflicts with the current state of a quiz or attempt
    (already submitted, already active, already attempted, not open...).
    """

    status_code = 409

    # Reason codes
    NOT_STARTED = 'NotStarted'
    ENDED = 'Ended'
    INACTIVE = 'Inactive'
    ALREADY_ATTEMPTED = 'AlreadyAttempted'
    ALREADY_SUBMITTED = 'AlreadySubmitted'
    ALREADY_ACTIVE = 'AlreadyActive'
    ALREADY_INACTIVE = 'AlreadyInactive'
    BACKWARD_NAVIGATION = 'BackwardNavigation'


class ScheduleConflictError(QuizHubError):
    """
    Manual activation or deactivation outside the scheduled window.

    Carries the would-be start or end time; the caller repeats the call
    with the ``-early`` confirmation to proceed.
    """

    status_code = 409

    EARLY_START = 'EarlyStart'
    EARLY_END = 'EarlyEnd'
    REOPEN = 'Reopen'

    def __init__(self, message: str, reason: str,
                 scheduled_start: Optional[datetime] = None,
                 scheduled_end: Optional[datetime] = None):
        super().__init__(message, reason)
        self.scheduled_start = scheduled_start
        self.scheduled_end = scheduled_end

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload['requires_confirmation'] = True
        if self.scheduled_start is not None:
            payload['scheduled_start_time'] = self.scheduled_start.isoformat()
        if self.scheduled_end is not None:
            payload['scheduled_end_time'] = self.scheduled_end.isoformat()
        return payload


class AuthorizationError(QuizHubError):
    """Wrong role, not the owning teacher, or a credential mismatch."""

    status_code = 403

    WRONG_ROLE = 'WrongRole'
    NOT_OWNER = 'NotOwner'
    INVALID_CREDENTIALS = 'InvalidCredentials'
    INVALID_ACCESS_KEY = 'InvalidAccessKey'
