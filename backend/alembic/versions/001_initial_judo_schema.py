"""Initial migration: create roster, bout, mat, pool and bracket tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _side_columns(side: str):
    return [
        sa.Column(f"{side}_athlete_id", sa.Integer(), nullable=True),
        sa.Column(f"{side}_name", sa.String(), nullable=True),
        sa.Column(f"{side}_team_id", sa.String(), nullable=True),
        sa.Column(f"{side}_team_name", sa.String(), nullable=True),
        sa.Column(f"{side}_weight", sa.String(), nullable=True),
        sa.Column(f"{side}_sex", sa.String(), nullable=True),
    ]


def _score_columns(side: str):
    return [
        sa.Column(f"{side}_ippon", sa.Boolean(), nullable=False),
        sa.Column(f"{side}_wazari", sa.Integer(), nullable=False),
        sa.Column(f"{side}_yuko", sa.Integer(), nullable=False),
        sa.Column(f"{side}_shido", sa.Integer(), nullable=False),
    ]


def upgrade() -> None:
    # Create team table
    op.create_table(
        "team",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("victoires", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create athlete table
    op.create_table(
        "athlete",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sex", sa.String(), nullable=False),
        sa.Column("weight", sa.String(), nullable=False),
        sa.Column("team_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
    )
    op.create_index("ix_athlete_team_id", "athlete", ["team_id"])

    # Create mat table
    op.create_table(
        "mat",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("etat", sa.String(), nullable=False),
        sa.Column("bout_ids", sa.JSON(), nullable=False),
        sa.Column("index_combat_actuel", sa.Integer(), nullable=False),
        sa.Column("score_confrontation", sa.JSON(), nullable=False),
        sa.Column("historique", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create bout table
    op.create_table(
        "bout",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("mat_id", sa.Integer(), nullable=True),
        *_side_columns("rouge"),
        *_side_columns("bleu"),
        *_score_columns("rouge"),
        *_score_columns("bleu"),
        sa.Column("etat", sa.String(), nullable=False),
        sa.Column("timer", sa.Integer(), nullable=True),
        sa.Column("osaekomi_actif", sa.Boolean(), nullable=False),
        sa.Column("osaekomi_cote", sa.String(), nullable=True),
        sa.Column("osaekomi_debut", sa.DateTime(), nullable=True),
        sa.Column("date_fin", sa.DateTime(), nullable=True),
        sa.Column("raison_fin", sa.String(), nullable=True),
        sa.Column("vainqueur", sa.String(), nullable=True),
        sa.Column("date_creation", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["mat_id"], ["mat.id"]),
        sa.ForeignKeyConstraint(["rouge_athlete_id"], ["athlete.id"]),
        sa.ForeignKeyConstraint(["bleu_athlete_id"], ["athlete.id"]),
    )
    op.create_index("ix_bout_mat_id", "bout", ["mat_id"])

    # Create pool and rencontre tables
    op.create_table(
        "pool",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("team_ids", sa.JSON(), nullable=False),
        sa.Column("classement", sa.JSON(), nullable=False),
        sa.Column("derniere_mise_a_jour", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "rencontre",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pool_id", sa.Integer(), nullable=False),
        sa.Column("equipe_a", sa.String(), nullable=False),
        sa.Column("equipe_b", sa.String(), nullable=False),
        sa.Column("bout_ids", sa.JSON(), nullable=False),
        sa.Column("etat", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["pool_id"], ["pool.id"]),
        sa.ForeignKeyConstraint(["equipe_a"], ["team.id"]),
        sa.ForeignKeyConstraint(["equipe_b"], ["team.id"]),
    )
    op.create_index("ix_rencontre_pool_id", "rencontre", ["pool_id"])

    # Create bracketmatch table
    op.create_table(
        "bracketmatch",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_type", sa.String(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("equipe_a", sa.String(), nullable=True),
        sa.Column("equipe_b", sa.String(), nullable=True),
        sa.Column("score_a", sa.Integer(), nullable=False),
        sa.Column("score_b", sa.Integer(), nullable=False),
        sa.Column("vainqueur", sa.String(), nullable=True),
        sa.Column("has_bye", sa.Boolean(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("bout_ids", sa.JSON(), nullable=False),
        sa.Column("assigned", sa.Boolean(), nullable=False),
        sa.Column("mat_id", sa.Integer(), nullable=True),
        sa.Column("date_assignation", sa.DateTime(), nullable=True),
        sa.Column("date_fin_match", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["equipe_a"], ["team.id"]),
        sa.ForeignKeyConstraint(["equipe_b"], ["team.id"]),
        sa.ForeignKeyConstraint(["mat_id"], ["mat.id"]),
        sa.UniqueConstraint("bracket_type", "phase", "match_number", name="uq_bracket_match_slot"),
    )


def downgrade() -> None:
    op.drop_table("bracketmatch")
    op.drop_index("ix_rencontre_pool_id", table_name="rencontre")
    op.drop_table("rencontre")
    op.drop_table("pool")
    op.drop_index("ix_bout_mat_id", table_name="bout")
    op.drop_table("bout")
    op.drop_table("mat")
    op.drop_index("ix_athlete_team_id", table_name="athlete")
    op.drop_table("athlete")
    op.drop_table("team")
