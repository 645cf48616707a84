"""
Test cases for attempt scoring.
"""
from itertools import combinations
from types import SimpleNamespace

import pytest

from quizhub.quiz.scoring import (
    SubmittedAnswer,
    canonical_answer,
    is_passing,
    percentage,
    score_answers,
)


def _question(question_id, options, points=1):
    return SimpleNamespace(
        id=question_id,
        points=points,
        options=[SimpleNamespace(option_text=text, is_correct=correct) for text, correct in options],
    )


def _answer(question_id, *selected):
    return SubmittedAnswer(question_id=question_id, selected_options=frozenset(selected))


SINGLE = _question(1, [('4', True), ('5', False)])
MULTIPLE = _question(2, [('2', True), ('3', False), ('4', True)], points=2)


class TestQuestionScoring:
    """Exact-match scoring without partial credit."""

    def test_single_choice_correct(self):
        """Test the correct option earns the question's points."""
        result = score_answers([SINGLE], {1: _answer(1, '4')})
        assert result.score == 1
        assert result.per_question[0].is_correct is True

    def test_single_choice_superset_is_incorrect(self):
        """Test selecting the correct option plus another is a mismatch."""
        result = score_answers([SINGLE], {1: _answer(1, '4', '5')})
        assert result.score == 0
        assert result.per_question[0].is_correct is False

    def test_multiple_choice_is_order_independent(self):
        """Test selection order does not matter."""
        result = score_answers([MULTIPLE], {2: _answer(2, '4', '2')})
        assert result.score == 2

    def test_multiple_choice_partial_selection_scores_zero(self):
        result = score_answers([MULTIPLE], {2: _answer(2, '2')})
        assert result.score == 0
        assert result.per_question[0].points_earned == 0

    def test_empty_and_missing_answers_are_incorrect(self):
        """Test unanswered questions score zero but still count towards the total."""
        result = score_answers([SINGLE, MULTIPLE], {1: _answer(1)})
        assert result.score == 0
        assert result.total_score == 3
        assert [a.is_correct for a in result.per_question] == [False, False]

    def test_question_without_correct_option_is_never_correct(self):
        question = _question(3, [('a', False), ('b', False)])
        result = score_answers([question], {3: _answer(3)})
        assert result.per_question[0].is_correct is False

    def test_unknown_question_ids_are_ignored(self):
        result = score_answers([SINGLE], {1: _answer(1, '4'), 99: _answer(99, 'x')})
        assert result.score == 1
        assert len(result.per_question) == 1

    def test_time_spent_is_carried_through(self):
        answer = SubmittedAnswer(question_id=1, selected_options=frozenset({'5'}), time_spent_seconds=17)
        result = score_answers([SINGLE], {1: answer})
        assert result.per_question[0].time_spent_seconds == 17

    def test_scoring_is_deterministic(self):
        answers = {1: _answer(1, '4'), 2: _answer(2, '2', '4')}
        assert score_answers([SINGLE, MULTIPLE], answers) == score_answers([SINGLE, MULTIPLE], answers)



THIRD = _question(3, [('a', False), ('b', True), ('c', True), ('d', True)], points=3)
QUIZ = [SINGLE, MULTIPLE, THIRD]


def _all_selections(question):
    texts = [opt.option_text for opt in question.options]
    return [frozenset(combo) for size in range(len(texts) + 1) for combo in combinations(texts, size)]


class TestScoringLaws:
    """Exact match earns full points; any other selection earns nothing."""

    @pytest.mark.parametrize('question', QUIZ, ids=['single', 'multiple', 'third'])
    def test_only_the_exact_correct_set_scores(self, question):
        correct = frozenset(opt.option_text for opt in question.options if opt.is_correct)
        for selection in _all_selections(question):
            scored = score_answers([question], {question.id: SubmittedAnswer(question.id, selection)})
            expected = selection == correct
            assert scored.per_question[0].is_correct is expected, selection
            assert scored.score == (question.points if expected else 0)

    @pytest.mark.parametrize('answers, expected_score', [
        ({}, 0),
        ({1: ('5',)}, 0),                                   # disjoint
        ({1: ('4',), 2: ('2',)}, 1),                        # strict subset on multiple
        ({2: ('2', '3', '4')}, 0),                          # superset
        ({1: ('4',), 2: ('4', '2'), 3: ('a',)}, 3),
        ({1: ('4',), 2: ('2', '4'), 3: ('b', 'c', 'd')}, 6),
        ({3: ('d', 'b', 'c'), 99: ('x',)}, 3),
    ])
    def test_totals_add_up(self, answers, expected_score):
        submitted = {qid: SubmittedAnswer(qid, frozenset(sel)) for qid, sel in answers.items()}
        result = score_answers(QUIZ, submitted)

        assert result.score == expected_score
        assert result.score == sum(a.points_earned for a in result.per_question)
        assert result.total_score == sum(q.points for q in QUIZ) == 6
        assert 0 <= result.score <= result.total_score


class TestPercentage:
    """Percentages round half-up and guard empty quizzes."""

    def test_rounds_half_up(self):
        assert percentage(1, 8) == 13  # 12.5
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67

    def test_zero_total_is_zero(self):
        assert percentage(0, 0) == 0

    def test_passing_threshold_is_inclusive(self):
        assert is_passing(2, 5, 40) is True
        assert is_passing(1, 3, 40) is False

    def test_canonical_answer_sorts(self):
        assert canonical_answer(['b', 'a', 'c']) == 'a,b,c'
