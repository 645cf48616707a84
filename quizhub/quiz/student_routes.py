"""
Student routes for taking quizzes.

Students can:
- List quizzes that are open right now
- Join a quiz while logged in, or enter one with a shared access key
- Resume, submit and review their attempts
"""
from flask import jsonify, request, session
from flask_login import current_user

from quizhub.common.clock import get_clock
from quizhub.common.decorators import student_required
from quizhub.common.errors import ValidationError
from quizhub.quiz import quiz_bp
from quizhub.quiz.access import AccessGate, Identity, sanitize_quiz
from quizhub.quiz.lifecycle import scheduled_end, scheduled_start, state_of
from quizhub.quiz.repository import QuizRepository
from quizhub.quiz.service import AttemptService
from quizhub.quiz.validation import parse_submission, validate_student_identity
from quizhub.security.rate_limiter import rate_limit

SESSION_ATTEMPTS_KEY = 'attempt_ids'


def _granted_attempt_ids() -> list:
    return session.get(SESSION_ATTEMPTS_KEY, [])


def _grant_attempt(attempt_id: int) -> None:
    granted = list(_granted_attempt_ids())
    if attempt_id not in granted:
        granted.append(attempt_id)
    session[SESSION_ATTEMPTS_KEY] = granted


def _owned_attempt(attempt_id: int):
    user_id = current_user.id if current_user.is_authenticated else None
    service = AttemptService(clock=get_clock())
    return service, service.get_owned(attempt_id, user_id, _granted_attempt_ids())


def _handle_payload(handle) -> dict:
    return {
        'attempt_id': handle.attempt_id,
        'started_at': handle.started_at.isoformat(),
        'quiz': handle.quiz,
    }


@quiz_bp.route('/quizzes/open', methods=['GET'])
@student_required
def list_open_quizzes():
    """Active quizzes, flagged with whether the student already attempted them."""
    attempted = {a.quiz_id for a in current_user.quiz_attempts if a.live}
    quizzes_data = [
        {
            'id': quiz.id,
            'title': quiz.title,
            'description': quiz.description,
            'timing_mode': quiz.timing_mode,
            'total_duration': quiz.total_duration,
            'question_count': quiz.get_question_count(),
            'total_points': quiz.get_total_points(),
            'teacher_name': quiz.owner.name if quiz.owner else None,
            'has_attempted': quiz.id in attempted,
        }
        for quiz in QuizRepository().list_active()
    ]
    return jsonify({'success': True, 'quizzes': quizzes_data}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/join', methods=['POST'])
@student_required
def join_quiz(quiz_id):
    """Open an attempt for the logged-in student."""
    gate = AccessGate(clock=get_clock())
    handle = gate.request_access(quiz_id, Identity(user_id=current_user.id, name=current_user.name))
    return jsonify({'success': True, **_handle_payload(handle)}), 201


@quiz_bp.route('/quizzes/access/<access_key>', methods=['GET'])
@rate_limit()
def lookup_access_key(access_key):
    """Resolve an access key to a quiz summary so the entry form can show it."""
    quiz = AccessGate(clock=get_clock()).resolve_access_key(access_key)
    start = scheduled_start(quiz)
    end = scheduled_end(quiz)
    return jsonify({
        'success': True,
        'quiz': {
            'id': quiz.id,
            'title': quiz.title,
            'description': quiz.description,
            'timing_mode': quiz.timing_mode,
            'total_duration': quiz.total_duration,
            'question_count': quiz.get_question_count(),
            'state': state_of(quiz, get_clock().now()).value,
            'scheduled_start_time': start.isoformat() if start else None,
            'scheduled_end_time': end.isoformat() if end else None,
        }
    }), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/access', methods=['POST'])
@rate_limit()
def access_with_key(quiz_id):
    """
    Enter a quiz with its access key.

    Request body:
    {
        "name": "Student Name",
        "usn": "1AB23CS001",
        "password": "...",
        "access_key": "AB12C"
    }

    The attempt id is remembered in the session so the same browser can
    submit and view the result without logging in.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    name, usn = validate_student_identity(data.get('name'), data.get('usn'))
    access_key = data.get('access_key')
    if not isinstance(access_key, str) or not access_key.strip():
        raise ValidationError('Access key is required')

    user_id = current_user.id if current_user.is_authenticated else None
    gate = AccessGate(clock=get_clock())
    handle = gate.request_access(
        quiz_id,
        Identity(user_id=user_id, name=name, external_id=usn),
        access_key=access_key,
        secret=data.get('password'),
    )
    _grant_attempt(handle.attempt_id)
    return jsonify({'success': True, **_handle_payload(handle)}), 201


@quiz_bp.route('/attempts/<int:attempt_id>', methods=['GET'])
def get_attempt(attempt_id):
    """Reload an in-progress attempt (e.g. after a page refresh)."""
    service, attempt = _owned_attempt(attempt_id)
    deadline = service.deadline(attempt)
    remaining = max(0, int((deadline - get_clock().now()).total_seconds()))
    return jsonify({
        'success': True,
        'attempt_id': attempt.id,
        'status': attempt.status,
        'started_at': attempt.started_at.isoformat(),
        'deadline': deadline.isoformat(),
        'remaining_seconds': remaining,
        'tab_switches': attempt.tab_switch_count,
        'quiz': sanitize_quiz(attempt.quiz),
    }), 200


@quiz_bp.route('/attempts/<int:attempt_id>/tab-switch', methods=['POST'])
def record_tab_switch(attempt_id):
    service, attempt = _owned_attempt(attempt_id)
    count = service.record_tab_switch(attempt)
    return jsonify({'success': True, 'tab_switches': count}), 200


@quiz_bp.route('/attempts/<int:attempt_id>/submit', methods=['POST'])
def submit_attempt(attempt_id):
    """
    Submit answers for an attempt.

    Request body:
    {
        "answers": [
            {"question_id": 1, "selected_options": ["4"], "time_spent": 12}
        ],
        "tab_switches": 0,
        "auto_submitted": false
    }
    """
    answers, tab_switches, auto_submitted = parse_submission(request.get_json(silent=True))
    service, attempt = _owned_attempt(attempt_id)
    attempt = service.submit(attempt, answers, tab_switches=tab_switches, auto_submitted=auto_submitted)
    return jsonify({
        'success': True,
        'message': 'Quiz submitted successfully',
        'attempt_id': attempt.id,
        'status': attempt.status,
        'score': attempt.score,
        'total_score': attempt.total_score,
    }), 200


@quiz_bp.route('/attempts/<int:attempt_id>/result', methods=['GET'])
def attempt_result(attempt_id):
    service, attempt = _owned_attempt(attempt_id)
    return jsonify({'success': True, 'result': service.result(attempt)}), 200
