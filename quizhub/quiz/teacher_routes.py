"""
Teacher routes for quiz management.

Teachers can:
- Create, edit and delete their quizzes
- Activate/deactivate quizzes (with early start/end confirmation)
- Rotate the access key shared with students
- View analytics over the attempts of a quiz
"""
from flask import jsonify, request
from flask_login import current_user

from quizhub.common.clock import get_clock
from quizhub.common.decorators import teacher_required
from quizhub.quiz import quiz_bp
from quizhub.quiz.lifecycle import scheduled_end, scheduled_start, state_of
from quizhub.quiz.repository import AttemptRepository
from quizhub.quiz.scoring import percentage
from quizhub.quiz.service import QuizService


def _service() -> QuizService:
    return QuizService(clock=get_clock())


def _iso(value):
    return value.isoformat() if value else None


def serialize_quiz(quiz, include_questions: bool = False) -> dict:
    """Teacher view of a quiz, including the access key and correct options."""
    start = scheduled_start(quiz)
    data = {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'timing_mode': quiz.timing_mode,
        'total_duration': quiz.total_duration,
        'question_count': quiz.get_question_count(),
        'total_points': quiz.get_total_points(),
        'is_active': quiz.is_active,
        'state': state_of(quiz, get_clock().now()).value,
        'scheduled_date': _iso(quiz.scheduled_date),
        'scheduled_time': quiz.scheduled_time,
        'scheduled_start_time': _iso(start),
        'scheduled_end_time': _iso(scheduled_end(quiz)),
        'actual_start_time': _iso(quiz.actual_start_time),
        'actual_end_time': _iso(quiz.actual_end_time),
        'early_start': quiz.early_start,
        'early_end': quiz.early_end,
        'access_key': quiz.access_key,
        'created_at': _iso(quiz.created_at),
    }
    if include_questions:
        data['questions'] = [
            {
                'id': question.id,
                'question_text': question.question_text,
                'question_type': question.question_type,
                'points': question.points,
                'time_limit': question.time_limit,
                'image_url': question.image_url,
                'options': [
                    {'text': opt.option_text, 'is_correct': opt.is_correct}
                    for opt in question.options
                ],
            }
            for question in quiz.questions
        ]
    return data


@quiz_bp.route('/quizzes', methods=['POST'])
@teacher_required
def create_quiz():
    """Create a new quiz. The quiz starts inactive with a fresh access key."""
    quiz = _service().create_quiz(current_user.id, request.get_json(silent=True))
    return jsonify({
        'success': True,
        'message': 'Quiz created successfully',
        'quiz': serialize_quiz(quiz)
    }), 201


@quiz_bp.route('/quizzes/mine', methods=['GET'])
@teacher_required
def list_my_quizzes():
    quizzes = _service().list_for_owner(current_user.id)
    return jsonify({
        'success': True,
        'quizzes': [serialize_quiz(quiz) for quiz in quizzes]
    }), 200


@quiz_bp.route('/quizzes/<int:quiz_id>', methods=['GET'])
@teacher_required
def get_quiz(quiz_id):
    """Get quiz details including questions and correct options (owner only)."""
    quiz = _service().get_owned(current_user.id, quiz_id)
    return jsonify({'success': True, 'quiz': serialize_quiz(quiz, include_questions=True)}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>', methods=['PUT'])
@teacher_required
def update_quiz(quiz_id):
    quiz = _service().update_quiz(current_user.id, quiz_id, request.get_json(silent=True))
    return jsonify({
        'success': True,
        'message': 'Quiz updated successfully',
        'quiz': serialize_quiz(quiz, include_questions=True)
    }), 200


@quiz_bp.route('/quizzes/<int:quiz_id>', methods=['DELETE'])
@teacher_required
def delete_quiz(quiz_id):
    """Delete a quiz and all of its attempts."""
    _service().delete_quiz(current_user.id, quiz_id)
    return jsonify({'success': True, 'message': 'Quiz deleted successfully'}), 200


def _confirm_flag() -> bool:
    data = request.get_json(silent=True) or {}
    return bool(data.get('confirm_early', False))


@quiz_bp.route('/quizzes/<int:quiz_id>/activate', methods=['POST'])
@teacher_required
def activate_quiz(quiz_id):
    """
    Start a quiz now.

    Before its scheduled start (or after its window) this returns 409 with
    the scheduled time unless ``confirm_early`` is sent or the
    ``activate-early`` route is used.
    """
    quiz = _service().activate(current_user.id, quiz_id, confirm_early=_confirm_flag())
    return jsonify({'success': True, 'message': 'Quiz activated', 'quiz': serialize_quiz(quiz)}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/activate-early', methods=['POST'])
@teacher_required
def activate_quiz_early(quiz_id):
    quiz = _service().activate(current_user.id, quiz_id, confirm_early=True)
    return jsonify({'success': True, 'message': 'Quiz activated early', 'quiz': serialize_quiz(quiz)}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/deactivate', methods=['POST'])
@teacher_required
def deactivate_quiz(quiz_id):
    quiz = _service().deactivate(current_user.id, quiz_id, confirm_early=_confirm_flag())
    return jsonify({'success': True, 'message': 'Quiz deactivated', 'quiz': serialize_quiz(quiz)}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/deactivate-early', methods=['POST'])
@teacher_required
def deactivate_quiz_early(quiz_id):
    quiz = _service().deactivate(current_user.id, quiz_id, confirm_early=True)
    return jsonify({'success': True, 'message': 'Quiz ended early', 'quiz': serialize_quiz(quiz)}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/access-key', methods=['POST'])
@teacher_required
def regenerate_access_key(quiz_id):
    quiz = _service().regenerate_access_key(current_user.id, quiz_id)
    return jsonify({'success': True, 'access_key': quiz.access_key}), 200


@quiz_bp.route('/quizzes/<int:quiz_id>/analytics', methods=['GET'])
@teacher_required
def quiz_analytics(quiz_id):
    """Aggregate statistics plus one row per attempt."""
    service = _service()
    analytics = service.analytics(current_user.id, quiz_id)
    quiz = service.get_owned(current_user.id, quiz_id)

    attempts_data = []
    for attempt in AttemptRepository().list_for_quiz(quiz.id):
        attempts_data.append({
            'id': attempt.id,
            'student': {
                'name': attempt.user.name if attempt.user else attempt.student_name,
                'email': attempt.user.email if attempt.user else None,
                'usn': attempt.external_id or (attempt.user.usn if attempt.user else None),
            },
            'status': attempt.status,
            'score': attempt.score,
            'total_score': attempt.total_score,
            'percentage': percentage(attempt.score, attempt.total_score),
            'tab_switches': attempt.tab_switch_count,
            'started_at': _iso(attempt.started_at),
            'completed_at': _iso(attempt.completed_at),
            'time_spent': attempt.time_spent_seconds,
        })

    return jsonify({
        'success': True,
        'quiz': {'id': quiz.id, 'title': quiz.title, 'question_count': quiz.get_question_count()},
        'analytics': analytics,
        'attempts': attempts_data
    }), 200
