"""Risk and treatment tables.

Aggregates are stored flat: value objects (owner, review cadence) become
columns on the parent row, and ID lists live in ordered link tables.
Enums are stored by their string value.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime


class RiskModel(Base):
    """A row per risk."""

    __tablename__ = "risks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    # Assessment; scores and severity are denormalized for filtering
    inherent_impact: Mapped[str] = mapped_column(String(50), nullable=False)
    inherent_likelihood: Mapped[str] = mapped_column(String(50), nullable=False)
    inherent_score: Mapped[int] = mapped_column(Integer, nullable=False)
    inherent_severity: Mapped[str] = mapped_column(String(50), nullable=False)
    residual_impact: Mapped[str | None] = mapped_column(String(50), nullable=True)
    residual_likelihood: Mapped[str | None] = mapped_column(String(50), nullable=True)
    residual_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    residual_severity: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Owner
    owner_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Review cadence
    review_period_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_reviewed: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    next_review_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    controls: Mapped[list["RiskControlLink"]] = relationship(
        back_populates="risk",
        cascade="all, delete-orphan",
        order_by="RiskControlLink.position",
        lazy="selectin",
    )
    assets: Mapped[list["RiskAssetLink"]] = relationship(
        back_populates="risk",
        cascade="all, delete-orphan",
        order_by="RiskAssetLink.position",
        lazy="selectin",
    )
    tags: Mapped[list["RiskTag"]] = relationship(
        back_populates="risk",
        cascade="all, delete-orphan",
        order_by="RiskTag.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        Index("idx_risk_status", "status"),
        Index("idx_risk_category", "category"),
        Index("idx_risk_severity", "inherent_severity"),
        Index("idx_risk_owner", "owner_id"),
        Index("idx_risk_next_review", "next_review_date"),
        Index("idx_risk_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<RiskModel(id={self.id}, status={self.status}, version={self.version})>"


class RiskControlLink(Base):
    """Control referenced by a risk."""

    __tablename__ = "risk_controls"

    risk_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("risks.id", ondelete="CASCADE"), primary_key=True
    )
    control_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    risk: Mapped[RiskModel] = relationship(back_populates="controls")

    __table_args__ = (Index("idx_risk_controls_control", "control_id"),)


class RiskAssetLink(Base):
    """Asset referenced by a risk."""

    __tablename__ = "risk_assets"

    risk_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("risks.id", ondelete="CASCADE"), primary_key=True
    )
    asset_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    risk: Mapped[RiskModel] = relationship(back_populates="assets")

    __table_args__ = (Index("idx_risk_assets_asset", "asset_id"),)


class RiskTag(Base):
    """Free-form tag on a risk."""

    __tablename__ = "risk_tags"

    risk_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("risks.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(100), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    risk: Mapped[RiskModel] = relationship(back_populates="tags")

    __table_args__ = (Index("idx_risk_tags_tag", "tag"),)


class TreatmentModel(Base):
    """A row per treatment."""

    __tablename__ = "treatments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    risk_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("risks.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    assignee: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    controls: Mapped[list["TreatmentControlLink"]] = relationship(
        back_populates="treatment",
        cascade="all, delete-orphan",
        order_by="TreatmentControlLink.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        Index("idx_treatment_risk", "risk_id"),
        Index("idx_treatment_status", "status"),
        Index("idx_treatment_due", "due_date"),
        Index("idx_treatment_assignee", "assignee"),
    )

    def __repr__(self) -> str:
        return f"<TreatmentModel(id={self.id}, status={self.status}, version={self.version})>"


class TreatmentControlLink(Base):
    """Control referenced by a treatment."""

    __tablename__ = "treatment_controls"

    treatment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("treatments.id", ondelete="CASCADE"), primary_key=True
    )
    control_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    treatment: Mapped[TreatmentModel] = relationship(back_populates="controls")

    __table_args__ = (Index("idx_treatment_controls_control", "control_id"),)
