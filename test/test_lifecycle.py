"""
Test cases for the quiz lifecycle rules.
"""
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from quizhub.common.errors import ScheduleConflictError, StateConflictError
from quizhub.quiz.lifecycle import (
    QuizState,
    Transition,
    evaluate,
    plan_activate,
    plan_deactivate,
    scheduled_end,
    scheduled_start,
    state_of,
    transition_changes,
)


def _quiz(**fields):
    values = dict(
        is_active=False,
        scheduled_date=date(2024, 1, 1),
        scheduled_time='10:00',
        total_duration=600,
        actual_start_time=None,
        actual_end_time=None,
        early_start=False,
        early_end=False,
    )
    values.update(fields)
    return SimpleNamespace(**values)


def at(hour, minute, second=0, day=1):
    return datetime(2024, 1, day, hour, minute, second)


class TestSchedule:
    """Scheduled window arithmetic."""

    def test_window_uses_duration_in_seconds(self):
        quiz = _quiz()
        assert scheduled_start(quiz) == at(10, 0)
        assert scheduled_end(quiz) == at(10, 10)

    def test_unscheduled_quiz_has_no_window(self):
        quiz = _quiz(scheduled_date=None, scheduled_time=None)
        assert scheduled_start(quiz) is None
        assert scheduled_end(quiz) is None
        assert evaluate(quiz, at(10, 5)) is None


class TestEvaluate:
    """Scheduler transitions for the 10:00 / 600s example."""

    def test_no_transition_before_start(self):
        assert evaluate(_quiz(), at(9, 59)) is None

    def test_activates_inside_window(self):
        assert evaluate(_quiz(), at(10, 0, 1)) == Transition.ACTIVATE

    def test_ends_after_window(self):
        quiz = _quiz(is_active=True, actual_start_time=at(10, 0, 1))
        assert evaluate(quiz, at(10, 10, 1)) == Transition.END

    def test_active_quiz_inside_window_is_left_alone(self):
        quiz = _quiz(is_active=True, actual_start_time=at(10, 0, 1))
        assert evaluate(quiz, at(10, 5)) is None

    def test_never_activates_on_another_day(self):
        assert evaluate(_quiz(scheduled_date=date(2024, 1, 2)), at(10, 5)) is None

    def test_window_missed_entirely_stays_inactive(self):
        assert evaluate(_quiz(), at(10, 30)) is None

    def test_ended_quiz_is_not_reactivated(self):
        """Test a quiz ended inside its window stays ended."""
        ended_early = _quiz(early_end=True, actual_end_time=at(10, 3))
        assert evaluate(ended_early, at(10, 5)) is None

        ended = _quiz(actual_start_time=at(10, 0), actual_end_time=at(10, 4))
        assert evaluate(ended, at(10, 5)) is None

    def test_reopened_quiz_is_not_auto_ended(self):
        quiz = _quiz(is_active=True, actual_start_time=at(11, 0), early_start=True)
        assert evaluate(quiz, at(11, 30)) is None

    def test_early_started_quiz_ends_at_scheduled_end(self):
        quiz = _quiz(is_active=True, actual_start_time=at(9, 50), early_start=True)
        assert evaluate(quiz, at(10, 10)) == Transition.END

    def test_activation_keeps_first_start_time(self):
        quiz = _quiz(actual_start_time=at(10, 0))
        assert transition_changes(quiz, Transition.ACTIVATE, at(10, 2)) == {'is_active': True}

    def test_end_records_end_time(self):
        quiz = _quiz(is_active=True)
        assert transition_changes(quiz, Transition.END, at(10, 10, 1)) == {
            'is_active': False,
            'actual_end_time': at(10, 10, 1),
        }


class TestStateOf:

    def test_states(self):
        assert state_of(_quiz(scheduled_date=None, scheduled_time=None), at(10, 0)) == QuizState.UNSCHEDULED_INACTIVE
        assert state_of(_quiz(), at(9, 0)) == QuizState.SCHEDULED_PENDING
        assert state_of(_quiz(is_active=True), at(10, 1)) == QuizState.ACTIVE
        assert state_of(_quiz(), at(10, 10)) == QuizState.ENDED
        assert state_of(_quiz(early_end=True), at(10, 5)) == QuizState.ENDED


class TestManualActivation:
    """Teacher activate/deactivate with early confirmation."""

    def test_early_activation_requires_confirmation(self):
        """Test activating at 09:59 is rejected with the scheduled start."""
        with pytest.raises(ScheduleConflictError) as excinfo:
            plan_activate(_quiz(), at(9, 59))
        error = excinfo.value
        assert error.reason == ScheduleConflictError.EARLY_START
        assert error.scheduled_start == at(10, 0)
        assert error.to_dict()['scheduled_start_time'] == '2024-01-01T10:00:00'
        assert error.to_dict()['requires_confirmation'] is True

    def test_confirmed_early_activation(self):
        changes = plan_activate(_quiz(), at(9, 59), confirm_early=True)
        assert changes == {'is_active': True, 'actual_start_time': at(9, 59), 'early_start': True}

    def test_activation_inside_window_needs_no_confirmation(self):
        changes = plan_activate(_quiz(), at(10, 1))
        assert changes == {'is_active': True, 'actual_start_time': at(10, 1)}

    def test_reopening_after_window_requires_confirmation(self):
        quiz = _quiz(actual_start_time=at(10, 0), actual_end_time=at(10, 10))
        with pytest.raises(ScheduleConflictError) as excinfo:
            plan_activate(quiz, at(11, 0))
        assert excinfo.value.reason == ScheduleConflictError.REOPEN

        changes = plan_activate(quiz, at(11, 0), confirm_early=True)
        assert changes['actual_start_time'] == at(11, 0)
        assert changes['actual_end_time'] is None

    def test_unscheduled_quiz_activates_freely(self):
        quiz = _quiz(scheduled_date=None, scheduled_time=None)
        assert plan_activate(quiz, at(8, 0)) == {'is_active': True, 'actual_start_time': at(8, 0)}

    def test_activating_active_quiz_conflicts(self):
        with pytest.raises(StateConflictError) as excinfo:
            plan_activate(_quiz(is_active=True), at(10, 1))
        assert excinfo.value.reason == StateConflictError.ALREADY_ACTIVE

    def test_early_deactivation_requires_confirmation(self):
        quiz = _quiz(is_active=True, actual_start_time=at(10, 0))
        with pytest.raises(ScheduleConflictError) as excinfo:
            plan_deactivate(quiz, at(10, 5))
        assert excinfo.value.reason == ScheduleConflictError.EARLY_END
        assert excinfo.value.scheduled_end == at(10, 10)

        changes = plan_deactivate(quiz, at(10, 5), confirm_early=True)
        assert changes == {'is_active': False, 'actual_end_time': at(10, 5), 'early_end': True}

    def test_deactivating_inactive_quiz_conflicts(self):
        with pytest.raises(StateConflictError) as excinfo:
            plan_deactivate(_quiz(), at(10, 5))
        assert excinfo.value.reason == StateConflictError.ALREADY_INACTIVE
