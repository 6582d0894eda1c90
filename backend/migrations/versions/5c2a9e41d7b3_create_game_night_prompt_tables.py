"""create bar, game_night, patron, prompt, submission, resolution and score tables

Revision ID: 5c2a9e41d7b3
Revises:
Create Date: 2026-09-14 20:10:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e41d7b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'bar',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_bar_owner_user_id', 'bar', ['owner_user_id'])

    op.create_table(
        'game_night',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bar_id', sa.Integer(), sa.ForeignKey('bar.id'), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=True),
        sa.Column('sport', sa.String(length=16), nullable=False, server_default='NBA'),
        sa.Column('sportsdataio_game_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_game_night_code', 'game_night', ['code'], unique=True)
    op.create_index('ix_game_night_owner_user_id', 'game_night', ['owner_user_id'])

    op.create_table(
        'patron',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_night_id', sa.Integer(), sa.ForeignKey('game_night.id'), nullable=False),
        sa.Column('nickname', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_patron_game_night_id', 'patron', ['game_night_id'])

    op.create_table(
        'prompt',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_night_id', sa.Integer(), sa.ForeignKey('game_night.id'), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('over_under_line', sa.Float(), nullable=True),
        sa.Column('state', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('opens_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locks_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            '(opens_at IS NULL AND locks_at IS NULL) OR '
            '(opens_at IS NOT NULL AND locks_at IS NOT NULL AND locks_at > opens_at)',
            name='ck_prompt_window',
        ),
    )
    op.create_index('ix_prompt_game_night_id', 'prompt', ['game_night_id'])

    op.create_table(
        'prompt_option',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prompt_id', sa.Integer(), sa.ForeignKey('prompt.id'), nullable=False),
        sa.Column('label', sa.String(length=128), nullable=False),
    )
    op.create_index('ix_prompt_option_prompt_id', 'prompt_option', ['prompt_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prompt_id', sa.Integer(), sa.ForeignKey('prompt.id'), nullable=False),
        sa.Column('patron_id', sa.Integer(), sa.ForeignKey('patron.id'), nullable=False),
        sa.Column('option_id', sa.Integer(), sa.ForeignKey('prompt_option.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('prompt_id', 'patron_id', name='uq_submission_prompt_patron'),
    )
    op.create_index('ix_submission_prompt_id', 'submission', ['prompt_id'])

    op.create_table(
        'prompt_resolution',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prompt_id', sa.Integer(), sa.ForeignKey('prompt.id'), nullable=False, unique=True),
        sa.Column('correct_option_id', sa.Integer(), sa.ForeignKey('prompt_option.id'), nullable=False),
        sa.Column('resolved_by_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'prompt_score',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prompt_id', sa.Integer(), sa.ForeignKey('prompt.id'), nullable=False),
        sa.Column('game_night_id', sa.Integer(), sa.ForeignKey('game_night.id'), nullable=False),
        sa.Column('patron_id', sa.Integer(), sa.ForeignKey('patron.id'), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.UniqueConstraint('prompt_id', 'patron_id', name='uq_prompt_score_prompt_patron'),
    )
    op.create_index('ix_prompt_score_prompt_id', 'prompt_score', ['prompt_id'])
    op.create_index('ix_prompt_score_game_night_id', 'prompt_score', ['game_night_id'])

    op.create_table(
        'analytic_event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kind', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('game_night_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_analytic_event_kind', 'analytic_event', ['kind'])
    op.create_index('ix_analytic_event_game_night_id', 'analytic_event', ['game_night_id'])


def downgrade():
    for table in (
        'analytic_event',
        'prompt_score',
        'prompt_resolution',
        'submission',
        'prompt_option',
        'prompt',
        'patron',
        'game_night',
        'bar',
    ):
        op.drop_table(table)
