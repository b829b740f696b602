"""game_session and content tables

Revision ID: 4a7c9e21b0d3
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4a7c9e21b0d3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'game_session',
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('state', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint('code'),
    )
    with op.batch_alter_table('game_session') as batch_op:
        batch_op.create_index(batch_op.f('ix_game_session_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_game_session_updated_at'), ['updated_at'], unique=False)

    op.create_table(
        'category',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('category') as batch_op:
        batch_op.create_index(batch_op.f('ix_category_name'), ['name'], unique=True)

    op.create_table(
        'prompt',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'prompt_category',
        sa.Column('prompt_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['category.id']),
        sa.ForeignKeyConstraint(['prompt_id'], ['prompt.id']),
        sa.PrimaryKeyConstraint('prompt_id', 'category_id'),
    )

    op.create_table(
        'valid_word',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prompt_id', sa.Integer(), nullable=False),
        sa.Column('word_group', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['prompt_id'], ['prompt.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('valid_word') as batch_op:
        batch_op.create_index(batch_op.f('ix_valid_word_prompt_id'), ['prompt_id'], unique=False)


def downgrade():
    with op.batch_alter_table('valid_word') as batch_op:
        batch_op.drop_index(batch_op.f('ix_valid_word_prompt_id'))
    op.drop_table('valid_word')
    op.drop_table('prompt_category')
    op.drop_table('prompt')
    with op.batch_alter_table('category') as batch_op:
        batch_op.drop_index(batch_op.f('ix_category_name'))
    op.drop_table('category')
    with op.batch_alter_table('game_session') as batch_op:
        batch_op.drop_index(batch_op.f('ix_game_session_updated_at'))
        batch_op.drop_index(batch_op.f('ix_game_session_status'))
    op.drop_table('game_session')
