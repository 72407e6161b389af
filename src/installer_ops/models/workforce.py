"""Worker, vehicle, assignment and certificate models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from installer_ops.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from installer_ops.models.project import Project


class Worker(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Installer (independent, team leader or subcontractor)."""

    __tablename__ = "worker"

    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    seniority: Mapped[str | None] = mapped_column(String, nullable=True)
    availability: Mapped[str] = mapped_column(String, nullable=False, default="available")
    worker_type: Mapped[str] = mapped_column(String, nullable=False, default="independent")
    team_leader_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="SET NULL"),
        nullable=True,
    )
    hourly_rate_domestic: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    hourly_rate_international: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    specializations: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint(
            "seniority IS NULL OR seniority IN ('junior', 'medior', 'senior', 'specialista')",
            name="worker_seniority_check",
        ),
        CheckConstraint(
            "availability IN ('available', 'on_vacation', 'sick')",
            name="worker_availability_check",
        ),
        CheckConstraint(
            "worker_type IN ('independent', 'subcontractor', 'team_leader')",
            name="worker_type_check",
        ),
        CheckConstraint(
            "(worker_type = 'subcontractor') = (team_leader_id IS NOT NULL)",
            name="worker_team_leader_check",
        ),
    )

    # Relationships
    team_leader: Mapped[Worker | None] = relationship(remote_side="Worker.id")
    assignments: Mapped[list[Assignment]] = relationship(back_populates="worker")
    certificates: Mapped[list[Certificate]] = relationship(
        back_populates="worker", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Vehicle(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Company vehicle."""

    __tablename__ = "vehicle"

    brand_model: Mapped[str] = mapped_column(String, nullable=False)
    license_plate: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'in_service')",
            name="vehicle_status_check",
        ),
    )

    assignments: Mapped[list[Assignment]] = relationship(back_populates="vehicle")


class Assignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Time-bounded binding of a worker and/or vehicle to a project."""

    __tablename__ = "assignment"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=False,
    )
    worker_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="CASCADE"),
        nullable=True,
    )
    vehicle_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vehicle.id", ondelete="CASCADE"),
        nullable=True,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "worker_id IS NOT NULL OR vehicle_id IS NOT NULL",
            name="assignment_resource_check",
        ),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="assignment_dates_check",
        ),
    )

    # Relationships
    project: Mapped[Project] = relationship(back_populates="assignments")
    worker: Mapped[Worker | None] = relationship(back_populates="assignments")
    vehicle: Mapped[Vehicle | None] = relationship(back_populates="assignments")


class Certificate(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Worker qualification certificate."""

    __tablename__ = "certificate"

    worker_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    issuer: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False, default="jine")
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    file_url: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('elektro', 'bozp', 'plosina', 'svarec', 'jine')",
            name="certificate_type_check",
        ),
    )

    worker: Mapped[Worker] = relationship(back_populates="certificates")
