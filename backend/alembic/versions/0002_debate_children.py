"""Debate participants, join requests and arguments.

Revision ID: 0002_debate_children
Revises: 0001_initial
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_debate_children"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "debate_participants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("debate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("slot", sa.String(length=1), nullable=False),
        sa.Column("identity", sa.String(length=255), nullable=False),
        sa.Column("display_alias", sa.String(length=255), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["debate_id"], ["debates.id"]),
        sa.UniqueConstraint("debate_id", "slot", name="uq_participants_debate_slot"),
        sa.UniqueConstraint("debate_id", "identity", name="uq_participants_debate_identity"),
    )

    op.create_table(
        "join_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("debate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("requester_identity", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["debate_id"], ["debates.id"]),
        sa.UniqueConstraint("debate_id", "requester_identity", name="uq_join_requests_debate_requester"),
    )

    op.create_table(
        "debate_arguments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("debate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("slot", sa.String(length=1), nullable=False),
        sa.Column("author_identity", sa.String(length=255), nullable=False),
        sa.Column("author_alias", sa.String(length=255), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("skipped", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("scoring_status", sa.String(length=16), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("strengths", sa.JSON(), nullable=False),
        sa.Column("weaknesses", sa.JSON(), nullable=False),
        sa.Column("fallacies", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["debate_id"], ["debates.id"]),
        sa.UniqueConstraint("debate_id", "round", "slot", name="uq_arguments_debate_round_slot"),
    )
    op.create_index("ix_arguments_debate_id", "debate_arguments", ["debate_id"])


def downgrade() -> None:
    op.drop_index("ix_arguments_debate_id", table_name="debate_arguments")
    op.drop_table("debate_arguments")
    op.drop_table("join_requests")
    op.drop_table("debate_participants")
