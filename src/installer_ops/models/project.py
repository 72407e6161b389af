"""Project model."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from installer_ops.calculators.rate_resolver import DOMESTIC_COUNTRIES
from installer_ops.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from installer_ops.models.billing import Invoice, TimesheetEntry
    from installer_ops.models.workforce import Assignment


class Project(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Installation project."""

    __tablename__ = "project"

    name: Mapped[str] = mapped_column(String, nullable=False)
    project_number: Mapped[str | None] = mapped_column(String, nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="preparing")
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('preparing', 'in_progress', 'completed', 'paused')",
            name="project_status_check",
        ),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="project_dates_check",
        ),
    )

    # Relationships
    assignments: Mapped[list[Assignment]] = relationship(back_populates="project")
    timesheet_entries: Mapped[list[TimesheetEntry]] = relationship(back_populates="project")
    invoices: Mapped[list[Invoice]] = relationship(back_populates="project")

    @property
    def is_domestic(self) -> bool:
        """Projects without a country are billed at domestic rates."""
        return not self.country or self.country in DOMESTIC_COUNTRIES
