"""
Storage access for quizzes and attempts.

The operations that guard invariants under concurrency are single
statements: the activation flip is an UPDATE guarded by the expected
``is_active`` value, attempt creation relies on the unique constraints
and surfaces a conflict instead of reading first, and completion is an
UPDATE guarded by ``status = 'in_progress'``.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from quizhub import db
from quizhub.quiz.models import Attempt, AnswerRecord, Quiz


class QuizRepository:

    def get(self, quiz_id: int) -> Optional[Quiz]:
        return db.session.get(Quiz, quiz_id)

    def get_by_access_key(self, access_key: str) -> Optional[Quiz]:
        return Quiz.query.filter_by(access_key=access_key).first()

    def access_key_exists(self, access_key: str) -> bool:
        return db.session.query(Quiz.id).filter_by(access_key=access_key).first() is not None

    def list_for_owner(self, owner_id: int) -> list[Quiz]:
        return Quiz.query.filter_by(owner_id=owner_id).order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()

    def list_active(self) -> list[Quiz]:
        return Quiz.query.filter_by(is_active=True).order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()

    def list_scheduled(self, is_active: bool) -> list[Quiz]:
        """Quizzes with a schedule and the given activation flag."""
        return Quiz.query.filter(
            Quiz.is_active.is_(is_active),
            Quiz.scheduled_date.isnot(None),
            Quiz.scheduled_time.isnot(None),
        ).all()

    def list_missing_access_key(self) -> list[Quiz]:
        return Quiz.query.filter(Quiz.access_key.is_(None)).all()

    def add(self, quiz: Quiz) -> Quiz:
        db.session.add(quiz)
        db.session.commit()
        return quiz

    def save(self, quiz: Quiz) -> Quiz:
        db.session.commit()
        return quiz

    def delete(self, quiz: Quiz) -> None:
        db.session.delete(quiz)
        db.session.commit()

    def set_active_if(self, quiz_id: int, expected_active: bool, changes: dict) -> bool:
        """
        Apply ``changes`` only if ``is_active`` still equals ``expected_active``.

        Returns True when this call won the compare-and-set.
        """
        result = db.session.execute(
            update(Quiz)
            .where(Quiz.id == quiz_id, Quiz.is_active.is_(expected_active))
            .values(**changes, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        won = result.rowcount == 1
        if won:
            quiz = db.session.get(Quiz, quiz_id)
            if quiz is not None:
                db.session.refresh(quiz)
        return won


class AttemptConflict(Exception):
    """A live attempt already exists for the identity and quiz."""


class AttemptRepository:

    def get(self, attempt_id: int) -> Optional[Attempt]:
        return db.session.get(Attempt, attempt_id)

    def find_live(self, quiz_id: int, user_id: Optional[int] = None,
                  external_id: Optional[str] = None) -> Optional[Attempt]:
        """The non-abandoned attempt of an identity for a quiz, if any."""
        if user_id is None and external_id is None:
            return None
        query = Attempt.query.filter(Attempt.quiz_id == quiz_id, Attempt.live.is_(True))
        if user_id is not None and external_id is not None:
            query = query.filter(db.or_(Attempt.user_id == user_id, Attempt.external_id == external_id))
        elif user_id is not None:
            query = query.filter(Attempt.user_id == user_id)
        else:
            query = query.filter(Attempt.external_id == external_id)
        return query.first()

    def list_for_quiz(self, quiz_id: int) -> list[Attempt]:
        return Attempt.query.filter_by(quiz_id=quiz_id).order_by(Attempt.started_at).all()

    def insert_if_absent(self, attempt: Attempt) -> Attempt:
        """
        Insert a new live attempt.

        Raises:
            AttemptConflict: a unique constraint rejected the insert because
                the identity already holds a live attempt for the quiz.
        """
        db.session.add(attempt)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AttemptConflict(str(exc.orig)) from exc
        return attempt

    def complete_if_in_progress(self, attempt_id: int, status: str, score: int, total_score: int,
                                completed_at: datetime, time_spent_seconds: int,
                                tab_switch_count: int, answers: list[AnswerRecord]) -> bool:
        """
        Finish an attempt and store its answers in one transaction.

        The status-guarded UPDATE makes a second submission a no-op; in
        that case nothing is written and False is returned.
        """
        result = db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status == Attempt.IN_PROGRESS)
            .values(
                status=status,
                score=score,
                total_score=total_score,
                completed_at=completed_at,
                time_spent_seconds=time_spent_seconds,
                tab_switch_count=tab_switch_count,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            return False

        for answer in answers:
            answer.attempt_id = attempt_id
            db.session.add(answer)
        db.session.commit()

        attempt = db.session.get(Attempt, attempt_id)
        if attempt is not None:
            db.session.refresh(attempt)
        return True

    def add_tab_switches(self, attempt_id: int, count: int = 1) -> bool:
        result = db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status == Attempt.IN_PROGRESS)
            .values(tab_switch_count=Attempt.tab_switch_count + count)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def list_stale_in_progress(self, started_before: datetime) -> list[Attempt]:
        return Attempt.query.filter(
            Attempt.status == Attempt.IN_PROGRESS,
            Attempt.started_at < started_before,
        ).all()

    def abandon_if_in_progress(self, attempt_id: int) -> bool:
        result = db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt_id, Attempt.status == Attempt.IN_PROGRESS)
            .values(status=Attempt.ABANDONED, live=None)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1
