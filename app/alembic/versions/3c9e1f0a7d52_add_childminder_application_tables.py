"""Add childminder application, timeline and id sequence tables

Revision ID: 3c9e1f0a7d52
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3c9e1f0a7d52"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "application_id_sequence",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "applications",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("first_name", sa.String(length=200), nullable=False),
        sa.Column("middle_names", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(), nullable=True),
        sa.Column("right_to_work", sa.String(), nullable=True),
        sa.Column("ni_number", sa.String(), nullable=True),
        sa.Column("home_address", sa.JSON(), nullable=False),
        sa.Column("premises_type", sa.String(), nullable=False),
        sa.Column("premises_address", sa.String(), nullable=True),
        sa.Column("premises_details", sa.JSON(), nullable=True),
        sa.Column("local_authority", sa.String(), nullable=True),
        sa.Column("registers", sa.JSON(), nullable=False),
        sa.Column("service", sa.JSON(), nullable=True),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("risk", sa.String(length=16), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("checks", sa.JSON(), nullable=True),
        sa.Column("connected_persons", sa.JSON(), nullable=True),
        sa.Column("previous_names", sa.JSON(), nullable=True),
        sa.Column("address_history", sa.JSON(), nullable=True),
        sa.Column("qualifications", sa.JSON(), nullable=True),
        sa.Column("employment_history", sa.JSON(), nullable=True),
        sa.Column("references_data", sa.JSON(), nullable=True),
        sa.Column("household", sa.JSON(), nullable=True),
        sa.Column("suitability", sa.JSON(), nullable=True),
        sa.Column("declaration", sa.JSON(), nullable=True),
        sa.Column("ofsted_check", sa.JSON(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registration_date", sa.Date(), nullable=True),
        sa.Column("registration_number", sa.String(length=64), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "timeline_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event", sa.String(length=2000), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(
            ["application_id"], ["applications.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_timeline_events_application_id"),
        "timeline_events",
        ["application_id"],
        unique=False,
    )


def downgrade():
    op.drop_index(op.f("ix_timeline_events_application_id"), table_name="timeline_events")
    op.drop_table("timeline_events")
    op.drop_table("applications")
    op.drop_table("application_id_sequence")
