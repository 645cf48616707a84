"""Create user and quiz tables

Revision ID: 3f9a2c7d41e0
Revises:
Create Date: 2026-10-18 10:12:31.184406

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '3f9a2c7d41e0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    inspector = inspect(op.get_bind())
    tables = inspector.get_table_names()

    if 'users' not in tables:
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('usn', sa.String(length=20), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('usn')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'quizzes' not in tables:
        op.create_table('quizzes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('owner_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('timing_mode', sa.String(length=20), nullable=False),
            sa.Column('total_duration', sa.Integer(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('scheduled_date', sa.Date(), nullable=True),
            sa.Column('scheduled_time', sa.String(length=5), nullable=True),
            sa.Column('actual_start_time', sa.DateTime(), nullable=True),
            sa.Column('actual_end_time', sa.DateTime(), nullable=True),
            sa.Column('early_start', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('early_end', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('access_key', sa.String(length=16), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quizzes_owner_id', 'quizzes', ['owner_id'], unique=False)
        op.create_index('ix_quizzes_is_active', 'quizzes', ['is_active'], unique=False)
        op.create_index('ix_quizzes_scheduled_date', 'quizzes', ['scheduled_date'], unique=False)
        op.create_index('ix_quizzes_access_key', 'quizzes', ['access_key'], unique=True)
        op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'], unique=False)
        op.create_index('ix_quizzes_active_schedule', 'quizzes', ['is_active', 'scheduled_date'], unique=False)

    if 'quiz_questions' not in tables:
        op.create_table('quiz_questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('question_type', sa.String(length=20), nullable=False),
            sa.Column('question_text', sa.Text(), nullable=False),
            sa.Column('points', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('time_limit', sa.Integer(), nullable=True),
            sa.Column('image_url', sa.String(length=500), nullable=True),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_questions_quiz_order', 'quiz_questions', ['quiz_id', 'order_index'], unique=False)

    if 'quiz_question_options' not in tables:
        op.create_table('quiz_question_options',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('option_text', sa.Text(), nullable=False),
            sa.Column('is_correct', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['question_id'], ['quiz_questions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_question_options_question_id', 'quiz_question_options', ['question_id'], unique=False)

    if 'quiz_attempts' not in tables:
        op.create_table('quiz_attempts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('student_name', sa.String(length=255), nullable=True),
            sa.Column('external_id', sa.String(length=20), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('live', sa.Boolean(), nullable=True),
            sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('started_at', sa.DateTime(), nullable=False),
            sa.Column('completed_at', sa.DateTime(), nullable=True),
            sa.Column('time_spent_seconds', sa.Integer(), nullable=True),
            sa.Column('tab_switch_count', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'quiz_id', 'live', name='uq_attempt_user_quiz_live'),
            sa.UniqueConstraint('external_id', 'quiz_id', 'live', name='uq_attempt_external_quiz_live')
        )
        op.create_index('ix_quiz_attempts_quiz_id', 'quiz_attempts', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_attempts_user_id', 'quiz_attempts', ['user_id'], unique=False)
        op.create_index('ix_quiz_attempts_external_id', 'quiz_attempts', ['external_id'], unique=False)
        op.create_index('ix_quiz_attempts_status', 'quiz_attempts', ['status'], unique=False)
        op.create_index('ix_quiz_attempts_started_at', 'quiz_attempts', ['started_at'], unique=False)
        op.create_index('ix_quiz_attempts_status_started', 'quiz_attempts', ['status', 'started_at'], unique=False)

    if 'quiz_answers' not in tables:
        op.create_table('quiz_answers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('attempt_id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('selected_options', sa.JSON(), nullable=False),
            sa.Column('is_correct', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('points_earned', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('time_spent_seconds', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['attempt_id'], ['quiz_attempts.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['question_id'], ['quiz_questions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question')
        )
        op.create_index('ix_quiz_answers_attempt_id', 'quiz_answers', ['attempt_id'], unique=False)
        op.create_index('ix_quiz_answers_question_id', 'quiz_answers', ['question_id'], unique=False)


def downgrade():
    op.drop_table('quiz_answers')
    op.drop_table('quiz_attempts')
    op.drop_table('quiz_question_options')
    op.drop_table('quiz_questions')
    op.drop_table('quizzes')
    op.drop_table('users')
