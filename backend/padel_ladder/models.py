from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


class User(Base):
    __tablename__ = "user"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    gender = Column(String, nullable=False)  # "male" | "female"
    playtomic_level = Column(Integer, nullable=False)
    # use_alter: team and user reference each other
    team_id = Column(
        String,
        ForeignKey("team.id", ondelete="SET NULL", use_alter=True, name="fk_user_team_id"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("uq_user_email_lower", func.lower(email), unique=True),
        Index("ix_user_team_id", "team_id"),
        CheckConstraint("gender IN ('male', 'female')", name="ck_user_gender"),
        CheckConstraint(
            "playtomic_level >= 1 AND playtomic_level <= 10",
            name="ck_user_playtomic_level",
        ),
    )


class Team(Base):
    __tablename__ = "team"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    creator_id = Column(String, ForeignKey("user.id"), nullable=False)
    league = Column(String, nullable=False)  # "mens" | "womens"
    position = Column(Integer, nullable=False)
    previous_position = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("league", "position", name="uq_team_league_position"),
        CheckConstraint("league IN ('mens', 'womens')", name="ck_team_league"),
    )


class JoinRequest(Base):
    __tablename__ = "join_request"
    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_join_request_user_id", "user_id"),
        Index("ix_join_request_team_id", "team_id"),
    )


class Challenge(Base):
    __tablename__ = "challenge"
    id = Column(String, primary_key=True)
    challenger_team_id = Column(
        String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False
    )
    challenged_team_id = Column(
        String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String, nullable=False, default="pending")
    challenger_sets = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    challenged_sets = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    score_submitted_by = Column(String, ForeignKey("team.id"), nullable=True)
    score_validated = Column(Boolean, nullable=False, default=False)
    winner_id = Column(String, ForeignKey("team.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "challenger_team_id <> challenged_team_id", name="ck_challenge_distinct_teams"
        ),
        Index("ix_challenge_challenger_team_id", "challenger_team_id"),
        Index("ix_challenge_challenged_team_id", "challenged_team_id"),
        Index("ix_challenge_status", "status"),
    )


class LeagueSettings(Base):
    __tablename__ = "league_settings"
    id = Column(Integer, primary_key=True)
    challenge_restriction_date = Column(Date, nullable=False)
    max_position_difference = Column(Integer, nullable=False)
