"""
Pytest configuration and fixtures for testing.
Runs the app against an in-memory SQLite database with a controllable clock.
"""
import os
from datetime import datetime, timedelta

import pytest
from flask import g

# Set test environment variables BEFORE importing the app package
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'sfndsfojoriwew09rjfjndsknfkj'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ['SCHEDULER_QUIZ_TIMEOUT_SECONDS'] = '0'
os.environ['ACCESS_RATE_LIMIT'] = '1000'

from quizhub import create_app, db  # noqa: E402
from quizhub.auth.models import User  # noqa: E402
from quizhub.auth.utils import hash_password  # noqa: E402
from quizhub.common.clock import Clock  # noqa: E402
from quizhub.security.rate_limiter import get_rate_limiter  # noqa: E402
from quizhub.quiz.service import QuizService  # noqa: E402


TEST_PASSWORD = 'Password123!'
_password_hash = None


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app()
    app.config['TESTING'] = True

    # Tests keep one app context pushed across requests, so the user cached
    # on `g` by Flask-Login has to be dropped between requests
    @app.before_request
    def _forget_loaded_user():
        g.pop('_login_user', None)

    yield app


@pytest.fixture
def clock(app):
    clock = FakeClock(datetime(2024, 1, 1, 9, 0, 0))
    previous = app.extensions['quizhub_clock']
    app.extensions['quizhub_clock'] = clock
    yield clock
    app.extensions['quizhub_clock'] = previous


@pytest.fixture(autouse=True)
def app_ctx(app):
    """Fresh schema and an app context for every test."""
    with app.app_context():
        db.drop_all()
        db.create_all()
        get_rate_limiter().reset()
        yield
        db.session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_user():
    """Factory for persisted users sharing TEST_PASSWORD."""
    counter = {'n': 0}

    def _make(role='student', name=None, usn=None, email=None):
        global _password_hash
        if _password_hash is None:
            _password_hash = hash_password(TEST_PASSWORD)
        counter['n'] += 1
        user = User(
            email=email or f'{role}{counter["n"]}@example.com',
            name=name or f'{role.title()} {counter["n"]}',
            role=role,
            usn=usn,
            password_hash=_password_hash,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def teacher(make_user):
    return make_user(role='teacher', name='Grace Hopper')


@pytest.fixture
def student(make_user):
    return make_user(role='student', name='Ada Lovelace', usn='1AB23CS001')


def quiz_payload(**overrides):
    """Valid quiz body with one single and one multiple choice question (3 points)."""
    payload = {
        'title': 'Arithmetic',
        'description': 'Warm-up',
        'timing_mode': 'total',
        'total_duration': 600,
        'questions': [
            {
                'question_text': '2 + 2 = ?',
                'question_type': 'single',
                'options': [{'text': '4', 'is_correct': True}, {'text': '5', 'is_correct': False}],
                'points': 1,
            },
            {
                'question_text': 'Even numbers',
                'question_type': 'multiple',
                'options': [
                    {'text': '2', 'is_correct': True},
                    {'text': '3', 'is_correct': False},
                    {'text': '4', 'is_correct': True},
                ],
                'points': 2,
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_quiz(teacher, clock):
    """Factory for quizzes owned by ``teacher``; ``schedule='10:00'`` schedules it on the clock's day."""

    def _make(schedule=None, scheduled_date=None, **overrides):
        if schedule is not None:
            overrides['scheduled_time'] = schedule
            overrides['scheduled_date'] = (scheduled_date or clock.now().date()).isoformat()
        return QuizService(clock=clock).create_quiz(teacher.id, quiz_payload(**overrides))

    return _make


@pytest.fixture
def active_quiz(make_quiz):
    quiz = make_quiz()
    quiz.is_active = True
    quiz.actual_start_time = datetime(2024, 1, 1, 9, 0, 0)
    db.session.commit()
    return quiz


def login(client, user):
    """Log ``user`` in on ``client`` without going through the password check."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user.id)
        sess['_fresh'] = True
