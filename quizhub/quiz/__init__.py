"""
Quiz module: authoring, lifecycle, access and timed attempts.

Teachers create and schedule quizzes; students join them (logged in, or
with a shared access key) and submit timed attempts that are scored
automatically.
"""
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from quizhub import db
from quizhub.common.errors import QuizHubError

quiz_bp = Blueprint('quiz', __name__, url_prefix='/api')


@quiz_bp.errorhandler(QuizHubError)
def handle_quiz_error(e):
    return jsonify(e.to_dict()), e.status_code


@quiz_bp.errorhandler(SQLAlchemyError)
def handle_database_error(e):
    db.session.rollback()
    current_app.logger.exception(f"Database error: {str(e)}")
    return jsonify({'success': False, 'error': 'A database error occurred'}), 500


@quiz_bp.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    db.session.rollback()
    current_app.logger.exception(f"Unexpected error: {str(e)}")
    return jsonify({'success': False, 'error': 'An unexpected error occurred'}), 500


from quizhub.quiz import teacher_routes, student_routes  # noqa: E402,F401
