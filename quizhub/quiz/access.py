"""
Access gate: decides whether an identity may open an attempt on a quiz.

Rules, in order:
1. The quiz exists and is currently active (NotStarted / Ended / Inactive).
2. The identity holds no live (non-abandoned) attempt for it (AlreadyAttempted).
3. Access-key entrants present the quiz's key and valid credentials
   (InvalidAccessKey / InvalidCredentials).
4. A new in-progress attempt is inserted; a unique-constraint conflict
   from a concurrent request is reported as AlreadyAttempted.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from quizhub.auth.identity import IdentityStore, SqlIdentityStore
from quizhub.common.clock import Clock, system_clock
from quizhub.common.errors import AuthorizationError, NotFoundError, StateConflictError
from quizhub.quiz.access_keys import keys_match, validate_access_key
from quizhub.quiz.lifecycle import QuizState, scheduled_end, scheduled_start, state_of
from quizhub.quiz.models import Attempt, Quiz
from quizhub.quiz.repository import AttemptConflict, AttemptRepository, QuizRepository
from quizhub.security.security_logger import SecurityLogger


@dataclass(frozen=True)
class Identity:
    """
    Who is asking for access.

    A registered student has ``user_id``; an access-key entrant has
    ``name`` and ``external_id`` (and may also be logged in).
    """
    user_id: Optional[int] = None
    name: Optional[str] = None
    external_id: Optional[str] = None

    @property
    def uses_access_key(self) -> bool:
        return self.external_id is not None

    def describe(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"usn:{self.external_id}"


@dataclass(frozen=True)
class AttemptHandle:
    attempt_id: int
    started_at: datetime
    quiz: dict


def sanitize_quiz(quiz: Quiz) -> dict:
    """Quiz data needed to run a session. Option correctness is never included."""
    return {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'timing_mode': quiz.timing_mode,
        'total_duration': quiz.total_duration,
        'questions': [
            {
                'id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'options': [{'text': opt.option_text} for opt in question.options],
                'points': question.points,
                'time_limit': question.time_limit,
                'image_url': question.image_url,
            }
            for question in quiz.questions
        ],
    }


_REJECTIONS = {
    QuizState.SCHEDULED_PENDING: ('This quiz has not started yet', StateConflictError.NOT_STARTED),
    QuizState.ENDED: ('This quiz has ended', StateConflictError.ENDED),
    QuizState.UNSCHEDULED_INACTIVE: ('This quiz is not active', StateConflictError.INACTIVE),
}


class QuizNotOpenError(StateConflictError):
    """Access rejected because of the quiz lifecycle state."""

    def __init__(self, message: str, reason: str, quiz: Quiz):
        super().__init__(message, reason)
        self.scheduled_start = scheduled_start(quiz)
        self.scheduled_end = scheduled_end(quiz)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.scheduled_start is not None:
            payload['scheduled_start_time'] = self.scheduled_start.isoformat()
            payload['scheduled_end_time'] = self.scheduled_end.isoformat()
        return payload


class AccessGate:

    def __init__(self, quizzes: Optional[QuizRepository] = None,
                 attempts: Optional[AttemptRepository] = None,
                 identities: Optional[IdentityStore] = None,
                 clock: Clock = system_clock):
        self.quizzes = quizzes or QuizRepository()
        self.attempts = attempts or AttemptRepository()
        self.identities = identities or SqlIdentityStore()
        self.clock = clock

    def ensure_open(self, quiz: Quiz, now: datetime) -> None:
        state = state_of(quiz, now)
        if state != QuizState.ACTIVE:
            message, reason = _REJECTIONS[state]
            raise QuizNotOpenError(message, reason, quiz)

    def resolve_access_key(self, access_key: str) -> Quiz:
        """Find the quiz behind a shared access key."""
        access_key = (access_key or '').strip()
        quiz = None
        if validate_access_key(access_key):
            quiz = self.quizzes.get_by_access_key(access_key)
        if quiz is None:
            raise NotFoundError('No quiz matches this access key')
        return quiz

    def request_access(self, quiz_id: int, identity: Identity,
                       access_key: Optional[str] = None,
                       secret: Optional[str] = None) -> AttemptHandle:
        """
        Open a new attempt for ``identity`` or raise the rejection.

        Raises:
            NotFoundError, QuizNotOpenError, StateConflictError
            (AlreadyAttempted), AuthorizationError (InvalidAccessKey,
            InvalidCredentials).
        """
        if identity.user_id is None and identity.external_id is None:
            raise AuthorizationError('An identity is required to join a quiz', AuthorizationError.INVALID_CREDENTIALS)

        quiz = self.quizzes.get(quiz_id)
        if quiz is None:
            raise NotFoundError('Quiz not found')

        now = self.clock.now()
        self.ensure_open(quiz, now)

        existing = self.attempts.find_live(quiz.id, identity.user_id, identity.external_id)
        if existing is not None:
            raise StateConflictError('You have already attempted this quiz', StateConflictError.ALREADY_ATTEMPTED)

        if identity.uses_access_key:
            if not keys_match(access_key, quiz.access_key):
                SecurityLogger.log_invalid_access_key(quiz.id, identity.external_id)
                raise AuthorizationError('Invalid access key', AuthorizationError.INVALID_ACCESS_KEY)
            if not self.identities.verify_credentials(identity.external_id, secret):
                SecurityLogger.log_failed_verification(quiz.id, identity.external_id)
                raise AuthorizationError('Invalid credentials', AuthorizationError.INVALID_CREDENTIALS)

        attempt = Attempt(
            quiz_id=quiz.id,
            user_id=identity.user_id,
            student_name=identity.name,
            external_id=identity.external_id,
            status=Attempt.IN_PROGRESS,
            live=True,
            started_at=now,
        )
        try:
            self.attempts.insert_if_absent(attempt)
        except AttemptConflict:
            current_app.logger.info(
                f"Concurrent join rejected for quiz {quiz.id}, identity {identity.describe()}"
            )
            raise StateConflictError('You have already attempted this quiz', StateConflictError.ALREADY_ATTEMPTED)

        current_app.logger.info(
            f"Attempt {attempt.id} started: quiz={quiz.id}, identity={identity.describe()}"
        )
        return AttemptHandle(attempt_id=attempt.id, started_at=attempt.started_at, quiz=sanitize_quiz(quiz))
