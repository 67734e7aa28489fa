"""Initial schema: tournament, team, match tables

Revision ID: 001_initial
Revises:
Create Date: 2026-06-01 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sport", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("number_of_fields", sa.Integer(), nullable=False),
        sa.Column("group_system", sa.String(), nullable=False),
        sa.Column("group_rounds", sa.Integer(), nullable=False),
        sa.Column("group_fields", sa.JSON(), nullable=True),
        sa.Column("group_match_minutes", sa.Integer(), nullable=False),
        sa.Column("group_break_minutes", sa.Integer(), nullable=False),
        sa.Column("final_match_minutes", sa.Integer(), nullable=True),
        sa.Column("final_break_minutes", sa.Integer(), nullable=True),
        sa.Column("break_between_phases_minutes", sa.Integer(), nullable=False),
        sa.Column("min_rest_slots", sa.Integer(), nullable=False),
        sa.Column("knockout_depth", sa.String(), nullable=False),
        sa.Column("playoff_final", sa.Boolean(), nullable=False),
        sa.Column("playoff_third_place", sa.Boolean(), nullable=False),
        sa.Column("playoff_fifth_sixth", sa.Boolean(), nullable=False),
        sa.Column("playoff_seventh_eighth", sa.Boolean(), nullable=False),
        sa.Column("allow_parallel_playoffs", sa.Boolean(), nullable=False),
        sa.Column("playoff_parallel_modes", sa.JSON(), nullable=True),
        sa.Column("referee_mode", sa.String(), nullable=False),
        sa.Column("referee_pool_size", sa.Integer(), nullable=False),
        sa.Column("points_win", sa.Integer(), nullable=False),
        sa.Column("points_draw", sa.Integer(), nullable=False),
        sa.Column("points_loss", sa.Integer(), nullable=False),
        sa.Column("placement_criteria", sa.JSON(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("group_label", sa.String(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_removed", sa.Boolean(), nullable=False),
        sa.Column("removed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.UniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),
    )
    op.create_index(op.f("ix_team_tournament_id"), "team", ["tournament_id"], unique=False)
    op.create_index(op.f("ix_team_group_label"), "team", ["group_label"], unique=False)

    # Playoff rows keep their symbolic sources next to the resolved team ids
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False),
        sa.Column("bracket_key", sa.String(), nullable=True),
        sa.Column("group_label", sa.String(), nullable=True),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("team_a_id", sa.Integer(), nullable=True),
        sa.Column("team_b_id", sa.Integer(), nullable=True),
        sa.Column("source_a", sa.String(), nullable=True),
        sa.Column("source_b", sa.String(), nullable=True),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("field", sa.Integer(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("referee", sa.Integer(), nullable=True),
        sa.Column("referee_team_id", sa.Integer(), nullable=True),
        sa.Column("parallel_mode", sa.String(), nullable=True),
        sa.Column("score_a", sa.Integer(), nullable=True),
        sa.Column("score_b", sa.Integer(), nullable=True),
        sa.Column("runtime_status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["team_a_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["team_b_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["referee_team_id"], ["team.id"]),
    )
    op.create_index(op.f("ix_match_tournament_id"), "match", ["tournament_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_match_tournament_id"), table_name="match")
    op.drop_table("match")
    op.drop_index(op.f("ix_team_group_label"), table_name="team")
    op.drop_index(op.f("ix_team_tournament_id"), table_name="team")
    op.drop_table("team")
    op.drop_table("tournament")
