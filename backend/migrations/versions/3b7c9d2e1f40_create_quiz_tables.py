"""create user, quiz_session, question, participant, game_history and answer tables

Revision ID: 3b7c9d2e1f40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3b7c9d2e1f40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=True),
        sa.Column('avatar', sa.String(length=256), nullable=True),
        sa.Column('total_games', sa.Integer(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('average_score', sa.Float(), nullable=False),
        sa.Column('wins', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'quiz_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=12), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('subject', sa.String(length=64), nullable=False),
        sa.Column('grade', sa.Integer(), nullable=True),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('time_per_question', sa.Integer(), nullable=False),
        sa.Column('max_players', sa.Integer(), nullable=False),
        sa.Column('team_assignment', sa.String(length=16), nullable=False),
        sa.Column('show_leaderboard', sa.Boolean(), nullable=False),
        sa.Column('allow_rejoin', sa.Boolean(), nullable=False),
        sa.Column('current_question_id', sa.Integer(), nullable=True),
        sa.Column('red_score', sa.Integer(), nullable=False),
        sa.Column('blue_score', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('question_deadline', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_quiz_session_code', 'quiz_session', ['code'], unique=True)
    op.create_index('ix_quiz_session_teacher_id', 'quiz_session', ['teacher_id'])
    op.create_index('ix_quiz_session_status', 'quiz_session', ['status'])

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('answers', sa.Text(), nullable=False),
        sa.Column('correct_answer', sa.Integer(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
    )
    op.create_index('ix_question_session_id', 'question', ['session_id'])

    # quiz_session and question reference each other
    with op.batch_alter_table('quiz_session') as batch_op:
        batch_op.create_foreign_key(
            'fk_quiz_session_current_question_id', 'question', ['current_question_id'], ['id']
        )

    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('team', sa.String(length=8), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('session_id', 'user_id', name='uq_participant_session_user'),
    )
    op.create_index('ix_participant_session_id', 'participant', ['session_id'])
    op.create_index('ix_participant_user_id', 'participant', ['user_id'])

    op.create_table(
        'game_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('red_correct', sa.Integer(), nullable=False),
        sa.Column('red_total', sa.Integer(), nullable=False),
        sa.Column('blue_correct', sa.Integer(), nullable=False),
        sa.Column('blue_total', sa.Integer(), nullable=False),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_game_history_session_question'),
    )
    op.create_index('ix_game_history_session_id', 'game_history', ['session_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('participant.id'), nullable=False),
        sa.Column('answer_index', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('participant_id', 'question_id', name='uq_answer_participant_question'),
    )
    op.create_index('ix_answer_session_id', 'answer', ['session_id'])


def downgrade():
    op.drop_table('answer')
    op.drop_table('game_history')
    op.drop_table('participant')
    with op.batch_alter_table('quiz_session') as batch_op:
        batch_op.drop_constraint('fk_quiz_session_current_question_id', type_='foreignkey')
    op.drop_table('question')
    op.drop_table('quiz_session')
    op.drop_table('user')
