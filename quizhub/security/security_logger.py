"""
Security logging module.

Logs access-key and credential failures, rate limiting and unauthorized
access to quizzes and attempts for monitoring and auditing.
"""

from flask import current_app, has_request_context, request
from datetime import datetime
from typing import Optional


def _remote_addr() -> str:
    if has_request_context():
        return request.remote_addr or 'unknown'
    return 'n/a'


class SecurityLogger:
    """
    Security event logger.
    """

    @staticmethod
    def log_invalid_access_key(quiz_id: int, external_id: Optional[str]):
        """
        Log an access-key entry with a key that does not match the quiz.

        Args:
            quiz_id: Quiz the student tried to join
            external_id: USN supplied by the student
        """
        current_app.logger.warning(
            f"SECURITY: Invalid access key - Quiz: {quiz_id}, USN: {external_id}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_failed_verification(quiz_id: int, external_id: Optional[str]):
        """
        Log a failed credential check during access-key entry.

        Args:
            quiz_id: Quiz the student tried to join
            external_id: USN supplied by the student
        """
        current_app.logger.warning(
            f"SECURITY: Failed credential verification - Quiz: {quiz_id}, USN: {external_id}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_rate_limit_exceeded(identifier: str, endpoint: str):
        current_app.logger.warning(
            f"SECURITY: Rate limit exceeded - Identifier: {identifier}, "
            f"Endpoint: {endpoint}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_unauthorized_access(resource: str, user_id: Optional[int] = None):
        """
        Log unauthorized access attempt.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )
