"""Create risk register tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create risks table
    op.create_table(
        "risks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("inherent_impact", sa.String(50), nullable=False),
        sa.Column("inherent_likelihood", sa.String(50), nullable=False),
        sa.Column("inherent_score", sa.Integer, nullable=False),
        sa.Column("inherent_severity", sa.String(50), nullable=False),
        sa.Column("residual_impact", sa.String(50), nullable=True),
        sa.Column("residual_likelihood", sa.String(50), nullable=True),
        sa.Column("residual_score", sa.Integer, nullable=True),
        sa.Column("residual_severity", sa.String(50), nullable=True),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("owner_name", sa.String(255), nullable=True),
        sa.Column("owner_department", sa.String(255), nullable=True),
        sa.Column("owner_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_period_months", sa.Integer, nullable=True),
        sa.Column("last_reviewed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
    )
    op.create_index("idx_risk_status", "risks", ["status"])
    op.create_index("idx_risk_category", "risks", ["category"])
    op.create_index("idx_risk_severity", "risks", ["inherent_severity"])
    op.create_index("idx_risk_owner", "risks", ["owner_id"])
    op.create_index("idx_risk_next_review", "risks", ["next_review_date"])
    op.create_index("idx_risk_active", "risks", ["is_active"])

    # Risk link tables
    op.create_table(
        "risk_controls",
        sa.Column(
            "risk_id",
            sa.String(36),
            sa.ForeignKey("risks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("control_id", sa.String(255), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
    )
    op.create_index("idx_risk_controls_control", "risk_controls", ["control_id"])

    op.create_table(
        "risk_assets",
        sa.Column(
            "risk_id",
            sa.String(36),
            sa.ForeignKey("risks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("asset_id", sa.String(255), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
    )
    op.create_index("idx_risk_assets_asset", "risk_assets", ["asset_id"])

    op.create_table(
        "risk_tags",
        sa.Column(
            "risk_id",
            sa.String(36),
            sa.ForeignKey("risks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("tag", sa.String(100), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
    )
    op.create_index("idx_risk_tags_tag", "risk_tags", ["tag"])

    # Create treatments table
    op.create_table(
        "treatments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "risk_id",
            sa.String(36),
            sa.ForeignKey("risks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assignee", sa.String(255), nullable=True),
        sa.Column("cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
    )
    op.create_index("idx_treatment_risk", "treatments", ["risk_id"])
    op.create_index("idx_treatment_status", "treatments", ["status"])
    op.create_index("idx_treatment_due", "treatments", ["due_date"])
    op.create_index("idx_treatment_assignee", "treatments", ["assignee"])

    op.create_table(
        "treatment_controls",
        sa.Column(
            "treatment_id",
            sa.String(36),
            sa.ForeignKey("treatments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("control_id", sa.String(255), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
    )
    op.create_index("idx_treatment_controls_control", "treatment_controls", ["control_id"])


def downgrade() -> None:
    op.drop_table("treatment_controls")
    op.drop_table("treatments")
    op.drop_table("risk_tags")
    op.drop_table("risk_assets")
    op.drop_table("risk_controls")
    op.drop_table("risks")
