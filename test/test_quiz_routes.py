"""
Test cases for the quiz HTTP API - teacher and student flows.
"""
from datetime import datetime

from conftest import TEST_PASSWORD, login, quiz_payload
from quizhub import db
from quizhub.quiz.models import Attempt, Quiz


def _reload(quiz_id):
    db.session.expire_all()
    return db.session.get(Quiz, quiz_id)


class TestTeacherQuizManagement:
    """Authoring and manual activation."""

    def test_create_quiz(self, client, clock, teacher):
        login(client, teacher)
        response = client.post('/api/quizzes', json=quiz_payload(
            scheduled_date='2024-01-01', scheduled_time='10:00'
        ))
        assert response.status_code == 201
        data = response.get_json()['quiz']
        assert data['is_active'] is False
        assert data['state'] == 'scheduled_pending'
        assert data['scheduled_end_time'] == '2024-01-01T10:10:00'
        assert len(data['access_key']) == 5

    def test_create_quiz_validation_error(self, client, clock, teacher):
        login(client, teacher)
        response = client.post('/api/quizzes', json=quiz_payload(questions=[]))
        assert response.status_code == 400
        assert response.get_json()['success'] is False
        assert Quiz.query.count() == 0

    def test_students_cannot_create_quizzes(self, client, student):
        login(client, student)
        response = client.post('/api/quizzes', json=quiz_payload())
        assert response.status_code == 403
        assert response.get_json()['reason'] == 'WrongRole'

    def test_requires_login(self, client):
        response = client.get('/api/quizzes/mine')
        assert response.status_code == 401

    def test_get_list_and_update(self, client, clock, teacher, make_quiz):
        quiz = make_quiz()
        login(client, teacher)

        assert [q['id'] for q in client.get('/api/quizzes/mine').get_json()['quizzes']] == [quiz.id]

        detail = client.get(f'/api/quizzes/{quiz.id}').get_json()['quiz']
        assert detail['questions'][0]['options'][0] == {'text': '4', 'is_correct': True}

        response = client.put(f'/api/quizzes/{quiz.id}', json=quiz_payload(title='Renamed'))
        assert response.status_code == 200
        assert _reload(quiz.id).title == 'Renamed'

    def test_other_teacher_is_not_owner(self, client, make_quiz, make_user):
        quiz = make_quiz()
        login(client, make_user(role='teacher'))
        response = client.get(f'/api/quizzes/{quiz.id}')
        assert response.status_code == 403
        assert response.get_json()['reason'] == 'NotOwner'

    def test_update_blocked_once_attempted(self, client, teacher, active_quiz, student):
        db.session.add(Attempt(quiz_id=active_quiz.id, user_id=student.id, status=Attempt.IN_PROGRESS,
                               live=True, started_at=datetime(2024, 1, 1, 9, 0)))
        db.session.commit()
        login(client, teacher)
        response = client.put(f'/api/quizzes/{active_quiz.id}', json=quiz_payload(title='Renamed'))
        assert response.status_code == 409

    def test_delete_cascades_to_attempts(self, client, teacher, active_quiz, student):
        db.session.add(Attempt(quiz_id=active_quiz.id, user_id=student.id, status=Attempt.IN_PROGRESS,
                               live=True, started_at=datetime(2024, 1, 1, 9, 0)))
        db.session.commit()
        login(client, teacher)
        response = client.delete(f'/api/quizzes/{active_quiz.id}')
        assert response.status_code == 200
        db.session.expire_all()
        assert Quiz.query.count() == 0
        assert Attempt.query.count() == 0

    def test_early_activation_flow(self, client, clock, teacher, make_quiz):
        """Test activating at 09:59 needs confirmation and carries the scheduled start."""
        quiz = make_quiz(schedule='10:00')
        login(client, teacher)
        clock.set(datetime(2024, 1, 1, 9, 59))

        response = client.post(f'/api/quizzes/{quiz.id}/activate')
        assert response.status_code == 409
        body = response.get_json()
        assert body['reason'] == 'EarlyStart'
        assert body['requires_confirmation'] is True
        assert body['scheduled_start_time'] == '2024-01-01T10:00:00'
        assert _reload(quiz.id).is_active is False

        response = client.post(f'/api/quizzes/{quiz.id}/activate-early')
        assert response.status_code == 200
        quiz = _reload(quiz.id)
        assert quiz.is_active is True and quiz.early_start is True

        response = client.post(f'/api/quizzes/{quiz.id}/activate')
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'AlreadyActive'

    def test_early_deactivation_flow(self, client, clock, teacher, make_quiz):
        quiz = make_quiz(schedule='10:00')
        login(client, teacher)
        clock.set(datetime(2024, 1, 1, 10, 1))
        client.post(f'/api/quizzes/{quiz.id}/activate')

        clock.set(datetime(2024, 1, 1, 10, 5))
        response = client.post(f'/api/quizzes/{quiz.id}/deactivate')
        assert response.status_code == 409
        assert response.get_json()['scheduled_end_time'] == '2024-01-01T10:10:00'

        response = client.post(f'/api/quizzes/{quiz.id}/deactivate', json={'confirm_early': True})
        assert response.status_code == 200
        quiz = _reload(quiz.id)
        assert quiz.early_end is True
        assert quiz.actual_end_time == datetime(2024, 1, 1, 10, 5)

    def test_regenerate_access_key(self, client, teacher, make_quiz):
        quiz = make_quiz()
        old_key = quiz.access_key
        login(client, teacher)
        response = client.post(f'/api/quizzes/{quiz.id}/access-key')
        assert response.status_code == 200
        new_key = response.get_json()['access_key']
        assert new_key != old_key
        assert _reload(quiz.id).access_key == new_key

    def test_analytics_endpoint(self, client, teacher, active_quiz):
        login(client, teacher)
        response = client.get(f'/api/quizzes/{active_quiz.id}/analytics')
        assert response.status_code == 200
        body = response.get_json()
        assert body['analytics']['total_attempts'] == 0
        assert body['attempts'] == []


class TestStudentQuizFlow:
    """Joining, submitting and reviewing as a logged-in student."""

    def test_join_submit_and_result(self, client, clock, student, active_quiz):
        login(client, student)

        open_quizzes = client.get('/api/quizzes/open').get_json()['quizzes']
        assert [(q['id'], q['has_attempted']) for q in open_quizzes] == [(active_quiz.id, False)]

        response = client.post(f'/api/quizzes/{active_quiz.id}/join')
        assert response.status_code == 201
        joined = response.get_json()
        attempt_id = joined['attempt_id']
        assert 'is_correct' not in joined['quiz']['questions'][0]['options'][0]

        first, second = joined['quiz']['questions']
        clock.advance(seconds=90)
        response = client.post(f'/api/attempts/{attempt_id}/submit', json={
            'answers': [
                {'question_id': first['id'], 'selected_options': ['4'], 'time_spent': 40},
                {'question_id': second['id'], 'selected_options': ['4', '2'], 'time_spent': 50},
            ],
            'tab_switches': 1,
        })
        assert response.status_code == 200
        assert response.get_json()['score'] == 3
        assert response.get_json()['status'] == 'completed'

        response = client.post(f'/api/attempts/{attempt_id}/submit', json={'answers': []})
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'AlreadySubmitted'

        result = client.get(f'/api/attempts/{attempt_id}/result').get_json()['result']
        assert result['percentage'] == 100
        assert result['passed'] is True
        assert result['answers'][0]['correct_options'] == ['4']

        open_quizzes = client.get('/api/quizzes/open').get_json()['quizzes']
        assert open_quizzes[0]['has_attempted'] is True

    def test_join_twice(self, client, student, active_quiz):
        login(client, student)
        client.post(f'/api/quizzes/{active_quiz.id}/join')
        response = client.post(f'/api/quizzes/{active_quiz.id}/join')
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'AlreadyAttempted'

    def test_join_pending_quiz(self, client, clock, student, make_quiz):
        quiz = make_quiz(schedule='10:00')
        login(client, student)
        response = client.post(f'/api/quizzes/{quiz.id}/join')
        assert response.status_code == 409
        assert response.get_json()['reason'] == 'NotStarted'
        assert response.get_json()['scheduled_start_time'] == '2024-01-01T10:00:00'

    def test_resume_attempt(self, client, clock, student, active_quiz):
        login(client, student)
        attempt_id = client.post(f'/api/quizzes/{active_quiz.id}/join').get_json()['attempt_id']
        clock.advance(seconds=100)

        body = client.get(f'/api/attempts/{attempt_id}').get_json()
        assert body['remaining_seconds'] == 500
        assert body['status'] == 'in_progress'

        response = client.post(f'/api/attempts/{attempt_id}/tab-switch')
        assert response.get_json()['tab_switches'] == 1

    def test_resume_per_question_attempt(self, client, clock, student, make_quiz):
        questions = [dict(q, time_limit=30) for q in quiz_payload()['questions']]
        quiz = make_quiz(timing_mode='per_question', total_duration=40, questions=questions)
        quiz.is_active = True
        db.session.commit()
        login(client, student)
        attempt_id = client.post(f'/api/quizzes/{quiz.id}/join').get_json()['attempt_id']
        clock.advance(seconds=50)

        body = client.get(f'/api/attempts/{attempt_id}').get_json()
        assert body['remaining_seconds'] == 10
        assert body['deadline'] == '2024-01-01T09:01:00'

    def test_other_student_cannot_read_attempt(self, client, clock, student, active_quiz, make_user):
        login(client, student)
        attempt_id = client.post(f'/api/quizzes/{active_quiz.id}/join').get_json()['attempt_id']

        login(client, make_user(role='student'))
        response = client.get(f'/api/attempts/{attempt_id}/result')
        assert response.status_code == 403


class TestAccessKeyFlow:
    """Anonymous entry with the shared access key."""

    def _body(self, quiz, **overrides):
        body = {'name': 'Ada Lovelace', 'usn': '1AB23CS001', 'password': TEST_PASSWORD,
                'access_key': quiz.access_key}
        body.update(overrides)
        return body

    def test_lookup_access_key(self, client, clock, active_quiz):
        response = client.get(f'/api/quizzes/access/{active_quiz.access_key}')
        assert response.status_code == 200
        assert response.get_json()['quiz']['state'] == 'active'
        assert client.get('/api/quizzes/access/NOPE0').status_code == 404

    def test_enter_submit_and_view_result(self, client, clock, student, active_quiz):
        response = client.post(f'/api/quizzes/{active_quiz.id}/access', json=self._body(active_quiz))
        assert response.status_code == 201
        attempt_id = response.get_json()['attempt_id']

        response = client.post(f'/api/attempts/{attempt_id}/submit', json={'answers': []})
        assert response.status_code == 200
        assert response.get_json()['score'] == 0

        result = client.get(f'/api/attempts/{attempt_id}/result').get_json()['result']
        assert result['student'] == {'name': 'Ada Lovelace', 'usn': '1AB23CS001'}

    def test_attempt_not_visible_to_other_browser(self, app, client, clock, student, active_quiz):
        attempt_id = client.post(f'/api/quizzes/{active_quiz.id}/access',
                                 json=self._body(active_quiz)).get_json()['attempt_id']
        other = app.test_client()
        assert other.get(f'/api/attempts/{attempt_id}').status_code == 403

    def test_invalid_key(self, client, clock, student, active_quiz):
        response = client.post(f'/api/quizzes/{active_quiz.id}/access',
                               json=self._body(active_quiz, access_key='WRONG'))
        assert response.status_code == 403
        assert response.get_json()['reason'] == 'InvalidAccessKey'

    def test_invalid_identity(self, client, clock, active_quiz):
        response = client.post(f'/api/quizzes/{active_quiz.id}/access',
                               json=self._body(active_quiz, name='R2-D2'))
        assert response.status_code == 400

    def test_rate_limited(self, app, client, clock, student, active_quiz, monkeypatch):
        monkeypatch.setitem(app.config, 'ACCESS_RATE_LIMIT', 2)
        body = self._body(active_quiz, access_key='WRONG')
        statuses = [client.post(f'/api/quizzes/{active_quiz.id}/access', json=body).status_code
                    for _ in range(3)]
        assert statuses == [403, 403, 429]


class TestErrorHandlers:

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_wrong_method_is_json(self, client):
        response = client.delete('/api/quizzes/open')
        assert response.status_code == 405
        assert response.get_json()['success'] is False
