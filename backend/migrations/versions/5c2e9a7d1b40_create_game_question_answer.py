"""create game, question and answer tables

Revision ID: 5c2e9a7d1b40
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('creator_id', sa.String(length=128), nullable=False),
            sa.Column('interviewed_name', sa.String(length=128), nullable=True),
            sa.Column('interviewed_email', sa.String(length=255), nullable=False),
            sa.Column('interviewed_user_id', sa.String(length=128), nullable=True),
            sa.Column('playing_name', sa.String(length=128), nullable=True),
            sa.Column('playing_email', sa.String(length=255), nullable=True),
            sa.Column('playing_user_id', sa.String(length=128), nullable=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('occasion', sa.String(length=255), nullable=True),
            sa.Column('payment_tier', sa.String(length=16), nullable=False, server_default='none'),
            sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
            sa.Column('paid_at', sa.DateTime(), nullable=True),
            sa.Column('status', sa.String(length=32), nullable=False, server_default='in_creation'),
            sa.Column('access_code', sa.String(length=16), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_game_creator_id', 'game', ['creator_id'])
        op.create_index('ix_game_interviewed_email', 'game', ['interviewed_email'])
        op.create_index('ix_game_playing_email', 'game', ['playing_email'])
        op.create_index('ix_game_status', 'game', ['status'])
        op.create_index('ix_game_access_code', 'game', ['access_code'], unique=True)

    if 'question' not in existing_tables:
        op.create_table(
            'question',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('type', sa.String(length=32), nullable=False, server_default='free_text'),
            sa.Column('order_position', sa.Integer(), nullable=False),
            sa.Column('options_json', sa.Text(), nullable=True),
            sa.Column('allow_multiple', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('game_id', 'order_position', name='uq_question_game_position'),
        )
        op.create_index('ix_question_game_id', 'question', ['game_id'])

    if 'answer' not in existing_tables:
        op.create_table(
            'answer',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
            sa.Column('value', sa.Text(), nullable=False, server_default=''),
            sa.Column('media_url', sa.Text(), nullable=True),
            sa.Column('media_kind', sa.String(length=16), nullable=True),
            sa.Column('correctness', sa.String(length=16), nullable=False, server_default='unmarked'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_answer_question_id', 'answer', ['question_id'])
        op.create_index('ix_answer_created_at', 'answer', ['created_at'])


def downgrade():
    op.drop_index('ix_answer_created_at', table_name='answer')
    op.drop_index('ix_answer_question_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_question_game_id', table_name='question')
    op.drop_table('question')
    op.drop_index('ix_game_access_code', table_name='game')
    op.drop_index('ix_game_status', table_name='game')
    op.drop_index('ix_game_playing_email', table_name='game')
    op.drop_index('ix_game_interviewed_email', table_name='game')
    op.drop_index('ix_game_creator_id', table_name='game')
    op.drop_table('game')
