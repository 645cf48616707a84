"""
Validation of quiz, submission and student-identity payloads.

Payloads are parsed into closed records before any state is touched;
unknown fields are ignored and every malformed field raises
ValidationError naming the offending question/option.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from quizhub.common.errors import ValidationError
from quizhub.config import config
from quizhub.quiz.models import QUESTION_SINGLE, QUESTION_TYPES, TIMING_PER_QUESTION, TIMING_TOTAL
from quizhub.quiz.scoring import SubmittedAnswer


TIME_OF_DAY_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
STUDENT_NAME_PATTERN = re.compile(r'^[A-Za-z ]+$')
EXTERNAL_ID_PATTERN = re.compile(r'^[A-Za-z0-9]+$')

_TIMING_ALIASES = {
    'total': TIMING_TOTAL,
    'per_question': TIMING_PER_QUESTION,
    'per-question': TIMING_PER_QUESTION,
}


@dataclass(frozen=True)
class OptionPayload:
    text: str
    is_correct: bool


@dataclass(frozen=True)
class QuestionPayload:
    text: str
    question_type: str
    options: tuple
    points: int
    time_limit: Optional[int] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class QuizPayload:
    title: str
    description: Optional[str]
    timing_mode: str
    total_duration: int
    questions: tuple
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None


def _positive_int(value: Any, message: str, minimum: int = 1) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        else:
            raise ValidationError(message)
    if value < minimum:
        raise ValidationError(message)
    return value


def parse_scheduled_date(value: Any) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError('Scheduled date must be in YYYY-MM-DD format')


def parse_scheduled_time(value: Any) -> Optional[str]:
    if value in (None, ''):
        return None
    value = str(value).strip()
    if not TIME_OF_DAY_PATTERN.match(value):
        raise ValidationError('Scheduled time must be in HH:MM 24-hour format')
    return value


def parse_option(raw: Any, question_number: int, option_number: int) -> OptionPayload:
    if not isinstance(raw, dict):
        raise ValidationError(f'Question {question_number}, Option {option_number}: Invalid option')
    text = raw.get('text')
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f'Question {question_number}, Option {option_number}: Option text is required')
    return OptionPayload(text=text.strip(), is_correct=bool(raw.get('is_correct', False)))


def parse_question(raw: Any, number: int, timing_mode: str) -> QuestionPayload:
    if not isinstance(raw, dict):
        raise ValidationError(f'Question {number}: Invalid question')

    text = raw.get('question_text')
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f'Question {number}: Question text is required')

    question_type = raw.get('question_type')
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f'Question {number}: Invalid question type')

    raw_options = raw.get('options')
    if not isinstance(raw_options, list) or len(raw_options) < 2:
        raise ValidationError(f'Question {number}: At least 2 options are required')
    options = tuple(parse_option(opt, number, i) for i, opt in enumerate(raw_options, start=1))

    texts = [opt.text for opt in options]
    if len(set(texts)) != len(texts):
        raise ValidationError(f'Question {number}: Option texts must be unique')

    correct_count = sum(1 for opt in options if opt.is_correct)
    if correct_count == 0:
        raise ValidationError(f'Question {number}: At least one option must be marked as correct')
    if question_type == QUESTION_SINGLE and correct_count > 1:
        raise ValidationError(f'Question {number}: Single choice questions have exactly one correct option')

    points = _positive_int(raw.get('points'), f'Question {number}: Points must be at least 1')

    time_limit = raw.get('time_limit')
    if time_limit in (None, ''):
        time_limit = None
    elif timing_mode == TIMING_PER_QUESTION:
        minimum = config.MIN_QUESTION_TIME_LIMIT
        time_limit = _positive_int(
            time_limit, f'Question {number}: Time limit must be at least {minimum} seconds', minimum
        )
    else:
        time_limit = None

    image_url = raw.get('image_url') or None
    if image_url is not None and not isinstance(image_url, str):
        raise ValidationError(f'Question {number}: Invalid image URL')

    return QuestionPayload(
        text=text.strip(),
        question_type=question_type,
        options=options,
        points=points,
        time_limit=time_limit,
        image_url=image_url,
    )


def parse_quiz_payload(data: Any) -> QuizPayload:
    """
    Validate a create/update quiz request body.

    Request body:
    {
        "title": "Quiz Title",
        "description": "Optional description",
        "timing_mode": "total" | "per_question",
        "total_duration": 600,            // seconds
        "scheduled_date": "2024-01-01",   // optional, with scheduled_time
        "scheduled_time": "10:00",        // optional, with scheduled_date
        "questions": [{
            "question_text": "2 + 2 = ?",
            "question_type": "single" | "multiple",
            "options": [{"text": "4", "is_correct": true}, {"text": "5"}],
            "points": 1,
            "time_limit": 30,             // optional, per_question mode
            "image_url": null
        }]
    }
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        raise ValidationError('Quiz title is required')

    description = data.get('description')
    if description is not None and not isinstance(description, str):
        raise ValidationError('Description must be text')

    raw_mode = data.get('timing_mode') or TIMING_TOTAL
    timing_mode = _TIMING_ALIASES.get(raw_mode) if isinstance(raw_mode, str) else None
    if timing_mode is None:
        raise ValidationError('Timing mode must be "total" or "per_question"')

    total_duration = _positive_int(data.get('total_duration'), 'Total duration must be a positive number of seconds')

    scheduled_date = parse_scheduled_date(data.get('scheduled_date'))
    scheduled_time = parse_scheduled_time(data.get('scheduled_time'))
    if (scheduled_date is None) != (scheduled_time is None):
        raise ValidationError('Scheduled date and time must be provided together')

    raw_questions = data.get('questions')
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ValidationError('At least one question is required')
    questions = tuple(parse_question(q, i, timing_mode) for i, q in enumerate(raw_questions, start=1))

    return QuizPayload(
        title=title.strip(),
        description=(description or '').strip() or None,
        timing_mode=timing_mode,
        total_duration=total_duration,
        questions=questions,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
    )


def parse_submission(data: Any) -> tuple[dict, int, bool]:
    """
    Validate a submit request body.

    Returns:
        (answers keyed by question id, tab switch count, auto-submitted flag)
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    raw_answers = data.get('answers', [])
    if not isinstance(raw_answers, list):
        raise ValidationError('answers must be a list')

    answers = {}
    for index, raw in enumerate(raw_answers, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f'Answer {index}: Invalid answer')
        question_id = raw.get('question_id')
        if isinstance(question_id, bool) or not isinstance(question_id, int):
            raise ValidationError(f'Answer {index}: question_id is required')
        if question_id in answers:
            raise ValidationError(f'Answer {index}: Duplicate answer for question {question_id}')

        selected = raw.get('selected_options', [])
        if not isinstance(selected, list) or not all(isinstance(s, str) for s in selected):
            raise ValidationError(f'Answer {index}: selected_options must be a list of option texts')

        time_spent = raw.get('time_spent', 0) or 0
        if isinstance(time_spent, bool) or not isinstance(time_spent, (int, float)) or time_spent < 0:
            raise ValidationError(f'Answer {index}: time_spent must be a non-negative number')

        answers[question_id] = SubmittedAnswer(
            question_id=question_id,
            selected_options=frozenset(selected),
            time_spent_seconds=int(time_spent),
        )

    tab_switches = data.get('tab_switches', 0) or 0
    if isinstance(tab_switches, bool) or not isinstance(tab_switches, int) or tab_switches < 0:
        raise ValidationError('tab_switches must be a non-negative integer')

    return answers, tab_switches, bool(data.get('auto_submitted', False))


def validate_student_identity(name: Any, external_id: Any) -> tuple[str, str]:
    """Validate the name/USN pair supplied for access-key entry."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Name is required')
    if not isinstance(external_id, str) or not external_id.strip():
        raise ValidationError('USN is required')

    name = name.strip()
    external_id = external_id.strip()
    if not STUDENT_NAME_PATTERN.match(name):
        raise ValidationError('Name should only contain alphabetic characters and spaces')
    if not EXTERNAL_ID_PATTERN.match(external_id):
        raise ValidationError('USN should only contain alphanumeric characters')
    return name, external_id
