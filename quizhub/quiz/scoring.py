"""
Attempt scoring.

``score_answers`` is a pure function of a quiz's questions and the
submitted selections. Questions and options are read through attributes
(``id``, ``points``, ``options``, ``option_text``, ``is_correct``), so ORM
rows and plain objects both work.

A question is correct only when the submitted selection, canonicalised
as sorted comma-joined option texts, equals the canonical correct set
and that set is non-empty. There is no partial credit.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    selected_options: frozenset = field(default_factory=frozenset)
    time_spent_seconds: int = 0


@dataclass(frozen=True)
class ScoredAnswer:
    question_id: int
    selected_options: tuple
    is_correct: bool
    points_earned: int
    time_spent_seconds: int


@dataclass(frozen=True)
class ScoreResult:
    per_question: tuple
    score: int
    total_score: int

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_score)


def canonical_answer(option_texts: Iterable[str]) -> str:
    """Sorted, comma-joined representation used for order-independent comparison."""
    return ','.join(sorted(option_texts))


def percentage(score: int, total_score: int) -> int:
    """``score / total_score * 100`` rounded half-up, 0 when there is nothing to score."""
    if not total_score or total_score <= 0:
        return 0
    value = Decimal(score) * 100 / Decimal(total_score)
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def is_passing(score: int, total_score: int, threshold: int) -> bool:
    return percentage(score, total_score) >= threshold


def score_question(question, answer: Optional[SubmittedAnswer]) -> ScoredAnswer:
    if answer is None or not answer.selected_options:
        return ScoredAnswer(
            question_id=question.id,
            selected_options=(),
            is_correct=False,
            points_earned=0,
            time_spent_seconds=answer.time_spent_seconds if answer else 0,
        )

    correct = canonical_answer(opt.option_text for opt in question.options if opt.is_correct)
    submitted = canonical_answer(answer.selected_options)
    is_correct = bool(correct) and correct == submitted

    return ScoredAnswer(
        question_id=question.id,
        selected_options=tuple(sorted(answer.selected_options)),
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
        time_spent_seconds=answer.time_spent_seconds,
    )


def score_answers(questions: Iterable, submitted: Mapping[int, SubmittedAnswer]) -> ScoreResult:
    """
    Score submitted answers against the quiz's questions, in quiz order.

    Args:
        questions: The quiz's questions in display order.
        submitted: Submitted answers keyed by question id. Answers for
            question ids that are not part of the quiz are ignored.

    Returns:
        ScoreResult with one ScoredAnswer per question and the totals.
    """
    per_question = []
    score = 0
    total_score = 0

    for question in questions:
        total_score += question.points
        scored = score_question(question, submitted.get(question.id))
        score += scored.points_earned
        per_question.append(scored)

    return ScoreResult(per_question=tuple(per_question), score=score, total_score=total_score)
