"""
Quiz lifecycle state machine.

Pure functions of ``(quiz, now)``: nothing here reads the clock or touches
the database. The scheduler and the manual activate/deactivate operations
call into this module and persist the returned field changes with a
compare-and-set on ``is_active``.

States:
- unscheduled_inactive: no schedule and not manually started
- scheduled_pending: has a schedule whose window has not opened yet
- active: ``is_active`` is set
- ended: the scheduled window has passed (or the quiz was ended early)
"""
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

from quizhub.common.errors import ScheduleConflictError, StateConflictError


class QuizState(str, Enum):
    UNSCHEDULED_INACTIVE = 'unscheduled_inactive'
    SCHEDULED_PENDING = 'scheduled_pending'
    ACTIVE = 'active'
    ENDED = 'ended'


class Transition(str, Enum):
    ACTIVATE = 'activate'
    END = 'end'


def has_schedule(quiz) -> bool:
    return quiz.scheduled_date is not None and bool(quiz.scheduled_time)


def parse_time_of_day(value: str) -> time:
    """Parse an "HH:MM" 24-hour string."""
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def scheduled_start(quiz) -> Optional[datetime]:
    """Scheduled date and time combined, or None for unscheduled quizzes."""
    if not has_schedule(quiz):
        return None
    scheduled_date = quiz.scheduled_date
    if isinstance(scheduled_date, datetime):
        scheduled_date = scheduled_date.date()
    return datetime.combine(scheduled_date, parse_time_of_day(quiz.scheduled_time))


def scheduled_end(quiz) -> Optional[datetime]:
    """Scheduled start plus the quiz's total duration (seconds)."""
    start = scheduled_start(quiz)
    if start is None:
        return None
    return start + timedelta(seconds=int(quiz.total_duration or 0))


def _same_day(scheduled_date, now: datetime) -> bool:
    if isinstance(scheduled_date, datetime):
        scheduled_date = scheduled_date.date()
    return scheduled_date == now.date()


def _was_reopened(quiz) -> bool:
    """True when the quiz was explicitly started after its window closed."""
    end = scheduled_end(quiz)
    return (
        end is not None
        and quiz.actual_start_time is not None
        and quiz.actual_start_time >= end
    )


def state_of(quiz, now: datetime) -> QuizState:
    """Derive the lifecycle state of a quiz at ``now``."""
    if quiz.is_active:
        return QuizState.ACTIVE
    if not has_schedule(quiz):
        return QuizState.UNSCHEDULED_INACTIVE
    if quiz.early_end or quiz.actual_end_time is not None or now >= scheduled_end(quiz):
        return QuizState.ENDED
    # Before the start, or inside the window before the next scheduler tick
    return QuizState.SCHEDULED_PENDING


def evaluate(quiz, now: datetime) -> Optional[Transition]:
    """
    Decide which scheduler transition, if any, applies to ``quiz`` at ``now``.

    Unscheduled quizzes never transition here; they only move through
    manual activate/deactivate.
    """
    if not has_schedule(quiz):
        return None

    start = scheduled_start(quiz)
    end = scheduled_end(quiz)

    if not quiz.is_active:
        if quiz.early_end or quiz.actual_end_time is not None:
            return None
        if _same_day(quiz.scheduled_date, now) and start <= now < end:
            return Transition.ACTIVATE
        return None

    if now >= end and not _was_reopened(quiz):
        return Transition.END
    return None


def activation_changes(quiz, now: datetime) -> dict:
    changes = {'is_active': True}
    if quiz.actual_start_time is None or quiz.actual_end_time is not None:
        changes['actual_start_time'] = now
    if quiz.actual_end_time is not None:
        changes['actual_end_time'] = None
    return changes


def end_changes(quiz, now: datetime) -> dict:
    return {'is_active': False, 'actual_end_time': now}


def transition_changes(quiz, transition: Transition, now: datetime) -> dict:
    """Field changes to persist for a scheduler transition."""
    if transition == Transition.ACTIVATE:
        changes = {'is_active': True}
        if quiz.actual_start_time is None:
            changes['actual_start_time'] = now
        return changes
    return end_changes(quiz, now)


def plan_activate(quiz, now: datetime, confirm_early: bool = False) -> dict:
    """
    Validate a manual activation and return the field changes to persist.

    Raises:
        StateConflictError: the quiz is already active.
        ScheduleConflictError: the scheduled start is still in the future,
            or the scheduled window already ended, and the caller did not
            confirm.
    """
    if quiz.is_active:
        raise StateConflictError('Quiz is already active', StateConflictError.ALREADY_ACTIVE)

    changes = activation_changes(quiz, now)
    start = scheduled_start(quiz)
    if start is None:
        return changes

    end = scheduled_end(quiz)
    if now < start:
        if not confirm_early:
            raise ScheduleConflictError(
                f'Quiz is scheduled to start at {start.isoformat()}. Confirm to start it early.',
                ScheduleConflictError.EARLY_START,
                scheduled_start=start,
            )
        changes['early_start'] = True
    elif now >= end:
        if not confirm_early:
            raise ScheduleConflictError(
                f'Quiz schedule ended at {end.isoformat()}. Confirm to reopen it.',
                ScheduleConflictError.REOPEN,
                scheduled_end=end,
            )
        changes['early_start'] = True
    return changes


def plan_deactivate(quiz, now: datetime, confirm_early: bool = False) -> dict:
    """
    Validate a manual deactivation and return the field changes to persist.

    Raises:
        StateConflictError: the quiz is already inactive.
        ScheduleConflictError: the scheduled end is still in the future and
            the caller did not confirm.
    """
    if not quiz.is_active:
        raise StateConflictError('Quiz is already inactive', StateConflictError.ALREADY_INACTIVE)

    changes = end_changes(quiz, now)
    end = scheduled_end(quiz)
    if end is not None and now < end:
        if not confirm_early:
            raise ScheduleConflictError(
                f'Quiz is scheduled to end at {end.isoformat()}. Confirm to end it early.',
                ScheduleConflictError.EARLY_END,
                scheduled_end=end,
            )
        changes['early_end'] = True
    return changes

