"""add penalties, manual tie-breaks and match corrections

Revision ID: 002_corrections
Revises: 001_initial
Create Date: 2026-06-20 10:12:41.507311

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_corrections'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('tournament', sa.Column('manual_tiebreaks', sa.JSON(), nullable=True))
    op.add_column('tournament', sa.Column('max_consecutive_referee_slots', sa.Integer(), nullable=True))
    op.add_column('match', sa.Column('penalty_score_a', sa.Integer(), nullable=True))
    op.add_column('match', sa.Column('penalty_score_b', sa.Integer(), nullable=True))
    op.add_column(
        'match', sa.Column('correction_in_progress', sa.Boolean(), nullable=False, server_default=sa.false())
    )

    op.create_table(
        'matchcorrection',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tournament_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('previous_score_a', sa.Integer(), nullable=False),
        sa.Column('previous_score_b', sa.Integer(), nullable=False),
        sa.Column('previous_penalty_score_a', sa.Integer(), nullable=True),
        sa.Column('previous_penalty_score_b', sa.Integer(), nullable=True),
        sa.Column('new_score_a', sa.Integer(), nullable=True),
        sa.Column('new_score_b', sa.Integer(), nullable=True),
        sa.Column('reason_type', sa.String(), nullable=True),
        sa.Column('note', sa.String(), nullable=True),
        sa.Column('corrected_by', sa.String(), nullable=True),
        sa.Column('bracket_stale', sa.Boolean(), nullable=False),
        sa.Column('opened_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tournament_id'], ['tournament.id']),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
    )
    op.create_index(op.f('ix_matchcorrection_tournament_id'), 'matchcorrection', ['tournament_id'], unique=False)
    op.create_index(op.f('ix_matchcorrection_match_id'), 'matchcorrection', ['match_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_matchcorrection_match_id'), table_name='matchcorrection')
    op.drop_index(op.f('ix_matchcorrection_tournament_id'), table_name='matchcorrection')
    op.drop_table('matchcorrection')
    op.drop_column('match', 'correction_in_progress')
    op.drop_column('match', 'penalty_score_b')
    op.drop_column('match', 'penalty_score_a')
    op.drop_column('tournament', 'max_consecutive_referee_slots')
    op.drop_column('tournament', 'manual_tiebreaks')
