"""
Database models for quizzes and attempts.

Question types:
- single: exactly one option is selected
- multiple: any subset of options may be selected

Timing modes:
- total: one countdown for the whole quiz
- per_question: a countdown per question, forward-only navigation
"""
from datetime import datetime

from quizhub import db


TIMING_TOTAL = 'total'
TIMING_PER_QUESTION = 'per_question'
TIMING_MODES = (TIMING_TOTAL, TIMING_PER_QUESTION)

QUESTION_SINGLE = 'single'
QUESTION_MULTIPLE = 'multiple'
QUESTION_TYPES = (QUESTION_SINGLE, QUESTION_MULTIPLE)


class Quiz(db.Model):
    """
    A quiz owned by a teacher.

    Activation is either manual (no schedule) or driven by
    ``scheduled_date`` + ``scheduled_time`` and ``total_duration``.
    Both schedule fields are set together or not at all.
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    timing_mode = db.Column(db.String(20), nullable=False, default=TIMING_TOTAL)
    total_duration = db.Column(db.Integer, nullable=False)  # seconds

    # Activation
    is_active = db.Column(db.Boolean, default=False, nullable=False, index=True)
    scheduled_date = db.Column(db.Date, nullable=True, index=True)
    scheduled_time = db.Column(db.String(5), nullable=True)  # "HH:MM", 24-hour
    actual_start_time = db.Column(db.DateTime, nullable=True)
    actual_end_time = db.Column(db.DateTime, nullable=True)
    early_start = db.Column(db.Boolean, default=False, nullable=False)
    early_end = db.Column(db.Boolean, default=False, nullable=False)
    access_key = db.Column(db.String(16), unique=True, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    owner = db.relationship("User", foreign_keys=[owner_id])
    questions = db.relationship("Question", backref="quiz", cascade="all, delete-orphan",
                                order_by="Question.order_index")
    attempts = db.relationship("Attempt", backref="quiz", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index('ix_quizzes_active_schedule', 'is_active', 'scheduled_date'),
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    def get_total_points(self) -> int:
        """Calculate total points for all questions."""
        return sum(q.points for q in self.questions)

    def get_question_count(self) -> int:
        return len(self.questions)


class Question(db.Model):
    """A single- or multiple-choice question."""
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    question_type = db.Column(db.String(20), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=1)
    time_limit = db.Column(db.Integer, nullable=True)  # seconds, per_question mode
    image_url = db.Column(db.String(500), nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    options = db.relationship("QuestionOption", backref="question", cascade="all, delete-orphan",
                              order_by="QuestionOption.order_index")

    __table_args__ = (
        db.Index('ix_quiz_questions_quiz_order', 'quiz_id', 'order_index'),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id}: {self.question_type}>"

    def get_correct_options(self) -> list[str]:
        return [opt.option_text for opt in self.options if opt.is_correct]


class QuestionOption(db.Model):
    __tablename__ = "quiz_question_options"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id", ondelete='CASCADE'), nullable=False, index=True)
    option_text = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<QuestionOption {self.id}: {self.option_text[:50]}>"


class Attempt(db.Model):
    """
    One identity's single pass through a quiz.

    ``live`` is True for every attempt that is not abandoned and NULL once
    abandoned. The unique constraints include it, so at most one live
    attempt exists per (user, quiz) and per (external id, quiz) while
    abandoned rows never collide (NULLs are distinct in unique indexes).
    """
    __tablename__ = "quiz_attempts"

    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    AUTO_SUBMITTED = 'auto_submitted'
    ABANDONED = 'abandoned'
    STATUSES = (IN_PROGRESS, COMPLETED, AUTO_SUBMITTED, ABANDONED)

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=True, index=True)

    # Anonymous (access-key) identity
    student_name = db.Column(db.String(255), nullable=True)
    external_id = db.Column(db.String(20), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default=IN_PROGRESS, index=True)
    live = db.Column(db.Boolean, nullable=True, default=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime, nullable=False, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    time_spent_seconds = db.Column(db.Integer, nullable=True)
    tab_switch_count = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    user = db.relationship("User", foreign_keys=[user_id], backref="quiz_attempts")
    answers = db.relationship("AnswerRecord", backref="attempt", cascade="all, delete-orphan",
                              order_by="AnswerRecord.position")

    __table_args__ = (
        db.UniqueConstraint('user_id', 'quiz_id', 'live', name='uq_attempt_user_quiz_live'),
        db.UniqueConstraint('external_id', 'quiz_id', 'live', name='uq_attempt_external_quiz_live'),
        db.Index('ix_quiz_attempts_status_started', 'status', 'started_at'),
    )

    def __repr__(self) -> str:
        return f"<Attempt {self.id}: Quiz {self.quiz_id}, {self.status}>"

    @property
    def is_finished(self) -> bool:
        return self.status in (self.COMPLETED, self.AUTO_SUBMITTED)


class AnswerRecord(db.Model):
    """Scored answer to one question of an attempt."""
    __tablename__ = "quiz_answers"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("quiz_attempts.id", ondelete='CASCADE'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id", ondelete='CASCADE'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    selected_options = db.Column(db.JSON, nullable=False, default=list)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    time_spent_seconds = db.Column(db.Integer, nullable=False, default=0)

    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question'),
    )

    def __repr__(self) -> str:
        return f"<AnswerRecord {self.id}: Question {self.question_id}>"

