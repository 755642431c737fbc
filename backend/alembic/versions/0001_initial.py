"""Users, teams, join requests, challenges and league settings."""

from datetime import date

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_SETS = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("gender", sa.String(), nullable=False),
        sa.Column("playtomic_level", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("gender IN ('male', 'female')", name="ck_user_gender"),
        sa.CheckConstraint(
            "playtomic_level >= 1 AND playtomic_level <= 10",
            name="ck_user_playtomic_level",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("uq_user_email_lower", "user", [sa.text("lower(email)")], unique=True)
    op.create_index("ix_user_team_id", "user", ["team_id"])

    op.create_table(
        "team",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("league", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("previous_position", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("league IN ('mens', 'womens')", name="ck_team_league"),
        sa.ForeignKeyConstraint(["creator_id"], ["user.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("league", "position", name="uq_team_league_position"),
    )

    with op.batch_alter_table("user") as batch:
        batch.create_foreign_key(
            "fk_user_team_id", "team", ["team_id"], ["id"], ondelete="SET NULL"
        )

    op.create_table(
        "join_request",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("team_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_join_request_user_id", "join_request", ["user_id"])
    op.create_index("ix_join_request_team_id", "join_request", ["team_id"])

    op.create_table(
        "challenge",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("challenger_team_id", sa.String(), nullable=False),
        sa.Column("challenged_team_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("challenger_sets", _SETS, nullable=True),
        sa.Column("challenged_sets", _SETS, nullable=True),
        sa.Column("score_submitted_by", sa.String(), nullable=True),
        sa.Column(
            "score_validated",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("winner_id", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "challenger_team_id <> challenged_team_id",
            name="ck_challenge_distinct_teams",
        ),
        sa.ForeignKeyConstraint(["challenger_team_id"], ["team.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["challenged_team_id"], ["team.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["score_submitted_by"], ["team.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["team.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_challenge_challenger_team_id", "challenge", ["challenger_team_id"])
    op.create_index("ix_challenge_challenged_team_id", "challenge", ["challenged_team_id"])
    op.create_index("ix_challenge_status", "challenge", ["status"])

    op.create_table(
        "league_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("challenge_restriction_date", sa.Date(), nullable=False),
        sa.Column("max_position_difference", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.bulk_insert(
        sa.table(
            "league_settings",
            sa.column("id", sa.Integer()),
            sa.column("challenge_restriction_date", sa.Date()),
            sa.column("max_position_difference", sa.Integer()),
        ),
        [{"id": 1, "challenge_restriction_date": date(2025, 3, 1), "max_position_difference": 4}],
    )


def downgrade() -> None:
    op.drop_table("league_settings")
    op.drop_index("ix_challenge_status", table_name="challenge")
    op.drop_index("ix_challenge_challenged_team_id", table_name="challenge")
    op.drop_index("ix_challenge_challenger_team_id", table_name="challenge")
    op.drop_table("challenge")
    op.drop_index("ix_join_request_team_id", table_name="join_request")
    op.drop_index("ix_join_request_user_id", table_name="join_request")
    op.drop_table("join_request")
    with op.batch_alter_table("user") as batch:
        batch.drop_constraint("fk_user_team_id", type_="foreignkey")
    op.drop_table("team")
    op.drop_index("ix_user_team_id", table_name="user")
    op.drop_index("uq_user_email_lower", table_name="user")
    op.drop_table("user")
