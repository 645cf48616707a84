"""
Attempt session: timing and navigation rules for one pass through a quiz.

This is the contract shared by the quiz-taking client and the server. It
is driven by elapsed seconds fed through ``tick`` rather than by reading
a clock, so the same rules can be replayed from any time source.

Timing modes:
- total: one countdown for the whole quiz, free navigation, auto-submit
  when it reaches zero.
- per_question: the countdown restarts on every question change,
  navigation is forward-only, expiry advances to the next question (the
  expiring question is charged its full allotted time) and expiry on the
  last question auto-submits.
"""
from dataclasses import dataclass
from typing import Optional

from quizhub.common.errors import NotFoundError, StateConflictError, ValidationError
from quizhub.quiz.models import QUESTION_SINGLE, TIMING_PER_QUESTION, TIMING_TOTAL
from quizhub.quiz.scoring import SubmittedAnswer


ADVANCED = 'advanced'
AUTO_SUBMITTED = 'auto_submitted'


@dataclass(frozen=True)
class SessionQuestion:
    id: int
    question_type: str
    option_texts: tuple
    time_limit: Optional[int] = None

    @classmethod
    def from_model(cls, question) -> "SessionQuestion":
        return cls(
            id=question.id,
            question_type=question.question_type,
            option_texts=tuple(opt.option_text for opt in question.options),
            time_limit=question.time_limit,
        )


class AttemptSession:
    """One student's in-progress pass through a quiz."""

    def __init__(self, questions, timing_mode: str = TIMING_TOTAL, total_duration: int = 0):
        if not questions:
            raise ValidationError('A quiz session needs at least one question')
        if timing_mode not in (TIMING_TOTAL, TIMING_PER_QUESTION):
            raise ValidationError(f'Unknown timing mode: {timing_mode}')

        self.questions = list(questions)
        self.timing_mode = timing_mode
        self.total_duration = int(total_duration or 0)

        self.current_index = 0
        self.total_elapsed = 0
        self.question_elapsed = {q.id: 0 for q in self.questions}
        self.answers = {q.id: set() for q in self.questions}
        self.tab_switch_count = 0
        self.submitted = False
        self.auto_submitted = False
        self.remaining = self._initial_countdown()

    @classmethod
    def for_quiz(cls, quiz) -> "AttemptSession":
        return cls(
            [SessionQuestion.from_model(q) for q in quiz.questions],
            timing_mode=quiz.timing_mode,
            total_duration=quiz.total_duration,
        )

    # Timing

    @property
    def per_question(self) -> bool:
        return self.timing_mode == TIMING_PER_QUESTION

    def question_duration(self, index: int) -> int:
        """Countdown for a question in per_question mode."""
        limit = self.questions[index].time_limit
        if limit:
            return int(limit)
        return max(1, self.total_duration // len(self.questions))

    def allotted_seconds(self) -> int:
        """How long the whole attempt may last; the server's deadline is built on this."""
        if self.per_question:
            return sum(self.question_duration(i) for i in range(len(self.questions)))
        return self.total_duration

    def _initial_countdown(self) -> int:
        if self.per_question:
            return self.question_duration(0)
        return self.total_duration

    def tick(self, seconds: int) -> list[str]:
        """
        Let ``seconds`` of wall time pass.

        Returns the events that fired, in order: ``ADVANCED`` for every
        automatic move to the next question and ``AUTO_SUBMITTED`` when
        the countdown closed the session.
        """
        self._ensure_open()
        if seconds < 0:
            raise ValidationError('Elapsed time cannot be negative')

        events = []
        seconds = int(seconds)
        while seconds > 0 and not self.submitted:
            step = min(seconds, self.remaining)
            seconds -= step
            self.remaining -= step
            self.total_elapsed += step
            self.question_elapsed[self.current_question.id] += step

            if self.remaining > 0:
                continue

            if not self.per_question or self.is_last_question:
                if self.per_question:
                    self._charge_full_duration()
                self._close(auto=True)
                events.append(AUTO_SUBMITTED)
            else:
                self._charge_full_duration()
                self._move_to(self.current_index + 1)
                events.append(ADVANCED)
        return events

    def _charge_full_duration(self) -> None:
        question = self.current_question
        self.question_elapsed[question.id] = max(
            self.question_elapsed[question.id], self.question_duration(self.current_index)
        )

    # Navigation

    @property
    def current_question(self) -> SessionQuestion:
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def _move_to(self, index: int) -> None:
        self.current_index = index
        if self.per_question:
            self.remaining = self.question_duration(index)

    def go_to(self, index: int) -> None:
        self._ensure_open()
        if index < 0 or index >= len(self.questions):
            raise ValidationError(f'Question index {index} is out of range')
        if self.per_question and index < self.current_index:
            raise StateConflictError(
                'Going back is not allowed when each question is timed',
                StateConflictError.BACKWARD_NAVIGATION,
            )
        if index != self.current_index:
            self._move_to(index)

    def next(self) -> bool:
        """Move to the next question; False when already on the last one."""
        if self.is_last_question:
            self._ensure_open()
            return False
        self.go_to(self.current_index + 1)
        return True

    def previous(self) -> bool:
        """Move to the previous question; False when already on the first one."""
        if self.current_index == 0:
            self._ensure_open()
            return False
        self.go_to(self.current_index - 1)
        return True

    # Answers

    def select(self, question_id: int, option_text: str) -> frozenset:
        """
        Record a click on an option.

        Single-choice questions keep only the latest option, multiple-choice
        questions toggle membership.
        """
        self._ensure_open()
        question = self._question(question_id)
        if option_text not in question.option_texts:
            raise ValidationError(f'"{option_text}" is not an option of question {question_id}')

        selection = self.answers[question_id]
        if question.question_type == QUESTION_SINGLE:
            selection.clear()
            selection.add(option_text)
        elif option_text in selection:
            selection.remove(option_text)
        else:
            selection.add(option_text)
        return frozenset(selection)

    def record_tab_switch(self) -> int:
        """Visibility change; informational only, never blocks submission."""
        self._ensure_open()
        self.tab_switch_count += 1
        return self.tab_switch_count

    # Submission

    def submit(self) -> dict:
        """Close the session manually and return the answers to score."""
        self._ensure_open()
        self._close(auto=False)
        return self.submitted_answers()

    def submitted_answers(self) -> dict:
        return {
            q.id: SubmittedAnswer(
                question_id=q.id,
                selected_options=frozenset(self.answers[q.id]),
                time_spent_seconds=self.question_elapsed[q.id],
            )
            for q in self.questions
        }

    def _close(self, auto: bool) -> None:
        self.submitted = True
        self.auto_submitted = auto

    def _ensure_open(self) -> None:
        if self.submitted:
            raise StateConflictError('This attempt has already been submitted',
                                     StateConflictError.ALREADY_SUBMITTED)

    def _question(self, question_id: int) -> SessionQuestion:
        for question in self.questions:
            if question.id == question_id:
                return question
        raise NotFoundError(f'Question {question_id} is not part of this quiz')
