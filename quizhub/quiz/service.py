"""
Quiz management and attempt submission.

QuizService covers the teacher side (authoring, activation, analytics);
AttemptService covers submission, results and tab-switch tracking.
Both raise errors from ``quizhub.common.errors``; routes turn them into
JSON responses.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from flask import current_app

from quizhub.common.clock import Clock, system_clock
from quizhub.common.errors import AuthorizationError, NotFoundError, StateConflictError
from quizhub.config import config
from quizhub.quiz import lifecycle
from quizhub.quiz.access_keys import generate_unique_access_key
from quizhub.quiz.models import AnswerRecord, Attempt, Question, QuestionOption, Quiz
from quizhub.quiz.repository import AttemptRepository, QuizRepository
from quizhub.quiz.scoring import is_passing, percentage, score_answers
from quizhub.quiz.session import AttemptSession
from quizhub.quiz.validation import QuizPayload, parse_quiz_payload


SCORE_BANDS = (
    (0, 25, '0-25%'),
    (25, 50, '25-50%'),
    (50, 75, '50-75%'),
    (75, 101, '75-100%'),
)


def build_questions(payload: QuizPayload) -> list[Question]:
    return [
        Question(
            question_text=q.text,
            question_type=q.question_type,
            points=q.points,
            time_limit=q.time_limit,
            image_url=q.image_url,
            order_index=index,
            options=[
                QuestionOption(option_text=opt.text, is_correct=opt.is_correct, order_index=opt_index)
                for opt_index, opt in enumerate(q.options)
            ],
        )
        for index, q in enumerate(payload.questions)
    ]


class QuizService:

    def __init__(self, quizzes: Optional[QuizRepository] = None,
                 attempts: Optional[AttemptRepository] = None,
                 clock: Clock = system_clock):
        self.quizzes = quizzes or QuizRepository()
        self.attempts = attempts or AttemptRepository()
        self.clock = clock

    def get_owned(self, owner_id: int, quiz_id: int) -> Quiz:
        quiz = self.quizzes.get(quiz_id)
        if quiz is None:
            raise NotFoundError('Quiz not found')
        if quiz.owner_id != owner_id:
            raise AuthorizationError('You can only manage your own quizzes', AuthorizationError.NOT_OWNER)
        return quiz

    def list_for_owner(self, owner_id: int) -> list[Quiz]:
        return self.quizzes.list_for_owner(owner_id)

    def create_quiz(self, owner_id: int, data: dict) -> Quiz:
        payload = parse_quiz_payload(data)
        quiz = Quiz(
            owner_id=owner_id,
            title=payload.title,
            description=payload.description,
            timing_mode=payload.timing_mode,
            total_duration=payload.total_duration,
            scheduled_date=payload.scheduled_date,
            scheduled_time=payload.scheduled_time,
            is_active=False,
            access_key=generate_unique_access_key(self.quizzes.access_key_exists),
            questions=build_questions(payload),
        )
        self.quizzes.add(quiz)
        current_app.logger.info(f"Quiz created: id={quiz.id}, owner={owner_id}, title={quiz.title}")
        return quiz

    def update_quiz(self, owner_id: int, quiz_id: int, data: dict) -> Quiz:
        """
        Replace a quiz's content and schedule.

        Questions cannot be replaced once attempts exist. A changed
        schedule clears the recorded start/end so the quiz can run again.
        """
        payload = parse_quiz_payload(data)
        quiz = self.get_owned(owner_id, quiz_id)
        if quiz.attempts.count() > 0:
            raise StateConflictError('Quiz already has attempts and can no longer be edited')

        schedule_changed = (
            quiz.scheduled_date != payload.scheduled_date or quiz.scheduled_time != payload.scheduled_time
        )
        quiz.title = payload.title
        quiz.description = payload.description
        quiz.timing_mode = payload.timing_mode
        quiz.total_duration = payload.total_duration
        quiz.scheduled_date = payload.scheduled_date
        quiz.scheduled_time = payload.scheduled_time
        quiz.questions = build_questions(payload)
        if schedule_changed and not quiz.is_active:
            quiz.actual_start_time = None
            quiz.actual_end_time = None
            quiz.early_start = False
            quiz.early_end = False

        self.quizzes.save(quiz)
        current_app.logger.info(f"Quiz updated: id={quiz.id}, owner={owner_id}")
        return quiz

    def delete_quiz(self, owner_id: int, quiz_id: int) -> None:
        """Delete a quiz together with all of its attempts."""
        quiz = self.get_owned(owner_id, quiz_id)
        attempt_count = quiz.attempts.count()
        self.quizzes.delete(quiz)
        current_app.logger.info(f"Quiz deleted: id={quiz_id}, owner={owner_id}, attempts={attempt_count}")

    def regenerate_access_key(self, owner_id: int, quiz_id: int) -> Quiz:
        quiz = self.get_owned(owner_id, quiz_id)
        quiz.access_key = generate_unique_access_key(self.quizzes.access_key_exists)
        self.quizzes.save(quiz)
        return quiz

    def activate(self, owner_id: int, quiz_id: int, confirm_early: bool = False) -> Quiz:
        quiz = self.get_owned(owner_id, quiz_id)
        changes = lifecycle.plan_activate(quiz, self.clock.now(), confirm_early)
        if not self.quizzes.set_active_if(quiz.id, False, changes):
            raise StateConflictError('Quiz is already active', StateConflictError.ALREADY_ACTIVE)
        current_app.logger.info(
            f"Quiz activated manually: id={quiz.id}, early={changes.get('early_start', False)}"
        )
        return quiz

    def deactivate(self, owner_id: int, quiz_id: int, confirm_early: bool = False) -> Quiz:
        quiz = self.get_owned(owner_id, quiz_id)
        changes = lifecycle.plan_deactivate(quiz, self.clock.now(), confirm_early)
        if not self.quizzes.set_active_if(quiz.id, True, changes):
            raise StateConflictError('Quiz is already inactive', StateConflictError.ALREADY_INACTIVE)
        current_app.logger.info(
            f"Quiz deactivated manually: id={quiz.id}, early={changes.get('early_end', False)}"
        )
        return quiz

    def analytics(self, owner_id: int, quiz_id: int) -> dict:
        quiz = self.get_owned(owner_id, quiz_id)
        attempts = self.attempts.list_for_quiz(quiz.id)
        return summarize_attempts(quiz, attempts, config.ANALYTICS_PASS_PERCENTAGE)


def summarize_attempts(quiz: Quiz, attempts: Iterable[Attempt], pass_percentage: int) -> dict:
    """Aggregate statistics over a quiz's attempts. Scores only count finished attempts."""
    attempts = list(attempts)
    finished = [a for a in attempts if a.is_finished]
    scores = [a.score for a in finished]
    percentages = [percentage(a.score, a.total_score) for a in finished]

    distribution = []
    for low, high, label in SCORE_BANDS:
        count = sum(1 for p in percentages if low <= p < high)
        distribution.append({
            'range': label,
            'count': count,
            'percentage': round(count / len(finished) * 100, 2) if finished else 0,
        })

    passed = sum(1 for a in finished if is_passing(a.score, a.total_score, pass_percentage))

    return {
        'total_attempts': len(attempts),
        'finished_attempts': len(finished),
        'in_progress_attempts': sum(1 for a in attempts if a.status == Attempt.IN_PROGRESS),
        'abandoned_attempts': sum(1 for a in attempts if a.status == Attempt.ABANDONED),
        'average_score': round(sum(scores) / len(scores), 2) if scores else 0,
        'highest_score': max(scores) if scores else 0,
        'lowest_score': min(scores) if scores else 0,
        'completion_rate': round(len(finished) / len(attempts) * 100, 2) if attempts else 0,
        'pass_percentage': pass_percentage,
        'passed_count': passed,
        'pass_rate': round(passed / len(finished) * 100, 2) if finished else 0,
        'score_distribution': distribution,
        'total_points': quiz.get_total_points(),
    }


class AttemptService:

    def __init__(self, quizzes: Optional[QuizRepository] = None,
                 attempts: Optional[AttemptRepository] = None,
                 clock: Clock = system_clock):
        self.quizzes = quizzes or QuizRepository()
        self.attempts = attempts or AttemptRepository()
        self.clock = clock

    def get_owned(self, attempt_id: int, user_id: Optional[int] = None,
                  granted_attempt_ids: Iterable[int] = ()) -> Attempt:
        """
        Load an attempt the caller may act on.

        Registered students own attempts carrying their user id; access-key
        students are granted the attempt ids stored in their session.
        """
        attempt = self.attempts.get(attempt_id)
        if attempt is None:
            raise NotFoundError('Attempt not found')
        if user_id is not None and attempt.user_id == user_id:
            return attempt
        if attempt.id in set(granted_attempt_ids):
            return attempt
        raise AuthorizationError('You do not have access to this attempt', AuthorizationError.NOT_OWNER)

    def deadline(self, attempt: Attempt) -> datetime:
        """Start time plus the time the attempt's session allows in its timing mode."""
        allotted = AttemptSession.for_quiz(attempt.quiz).allotted_seconds()
        return attempt.started_at + timedelta(seconds=allotted)

    def submit(self, attempt: Attempt, answers: dict, tab_switches: int = 0,
               auto_submitted: bool = False) -> Attempt:
        """
        Score and finish an in-progress attempt.

        The attempt is marked auto-submitted when the client says the
        timer closed it, or when it arrives after the deadline plus the
        configured grace period.

        Raises:
            StateConflictError: the attempt was already submitted or abandoned.
        """
        if attempt.status != Attempt.IN_PROGRESS:
            raise StateConflictError('This attempt has already been submitted',
                                     StateConflictError.ALREADY_SUBMITTED)

        quiz = attempt.quiz
        now = self.clock.now()
        result = score_answers(quiz.questions, answers)

        late = now > self.deadline(attempt) + timedelta(seconds=config.SUBMISSION_GRACE_SECONDS)
        status = Attempt.AUTO_SUBMITTED if auto_submitted or late else Attempt.COMPLETED

        records = [
            AnswerRecord(
                question_id=scored.question_id,
                position=position,
                selected_options=list(scored.selected_options),
                is_correct=scored.is_correct,
                points_earned=scored.points_earned,
                time_spent_seconds=scored.time_spent_seconds,
            )
            for position, scored in enumerate(result.per_question)
        ]

        completed = self.attempts.complete_if_in_progress(
            attempt.id,
            status=status,
            score=result.score,
            total_score=result.total_score,
            completed_at=now,
            time_spent_seconds=int((now - attempt.started_at).total_seconds()),
            tab_switch_count=max(attempt.tab_switch_count or 0, tab_switches),
            answers=records,
        )
        if not completed:
            raise StateConflictError('This attempt has already been submitted',
                                     StateConflictError.ALREADY_SUBMITTED)

        current_app.logger.info(
            f"Attempt {attempt.id} submitted: status={status}, score={result.score}/{result.total_score}, "
            f"late={late}"
        )
        return self.attempts.get(attempt.id)

    def record_tab_switch(self, attempt: Attempt) -> int:
        if not self.attempts.add_tab_switches(attempt.id):
            raise StateConflictError('This attempt has already been submitted',
                                     StateConflictError.ALREADY_SUBMITTED)
        return self.attempts.get(attempt.id).tab_switch_count

    def result(self, attempt: Attempt) -> dict:
        """Result page data. Correct options are only revealed for finished attempts."""
        quiz = attempt.quiz
        finished = attempt.is_finished
        records = {record.question_id: record for record in attempt.answers}

        answers = []
        for question in quiz.questions:
            record = records.get(question.id)
            answers.append({
                'question_id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'selected_options': list(record.selected_options) if record else [],
                'correct_options': question.get_correct_options() if finished else None,
                'is_correct': record.is_correct if record else False,
                'points_earned': record.points_earned if record else 0,
                'points': question.points,
                'time_spent': record.time_spent_seconds if record else 0,
            })

        return {
            'attempt_id': attempt.id,
            'quiz': {'id': quiz.id, 'title': quiz.title},
            'student': {
                'name': attempt.user.name if attempt.user else attempt.student_name,
                'usn': attempt.external_id,
            },
            'status': attempt.status,
            'score': attempt.score,
            'total_score': attempt.total_score,
            'percentage': percentage(attempt.score, attempt.total_score),
            'pass_percentage': config.RESULT_PASS_PERCENTAGE,
            'passed': finished and is_passing(attempt.score, attempt.total_score, config.RESULT_PASS_PERCENTAGE),
            'started_at': attempt.started_at.isoformat() if attempt.started_at else None,
            'completed_at': attempt.completed_at.isoformat() if attempt.completed_at else None,
            'time_spent': attempt.time_spent_seconds,
            'tab_switches': attempt.tab_switch_count,
            'answers': answers,
        }

    def abandon_stale(self, now: Optional[datetime] = None) -> int:
        """
        Mark in-progress attempts whose quiz time plus the grace period has
        run out as abandoned, which frees the identity for one new attempt.
        """
        now = now or self.clock.now()
        grace = timedelta(minutes=config.ATTEMPT_ABANDON_GRACE_MINUTES)
        abandoned = 0
        for attempt in self.attempts.list_stale_in_progress(now - grace):
            if now < self.deadline(attempt) + grace:
                continue
            if self.attempts.abandon_if_in_progress(attempt.id):
                abandoned += 1
                current_app.logger.info(f"Attempt {attempt.id} marked abandoned (quiz {attempt.quiz_id})")
        return abandoned
