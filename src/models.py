"""Data models for the mold registry."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import declarative_base

from molds.domain import MOLD_ACTIONS, MOLD_STATUSES, Assignment, assignment_from_columns
from time_utils import ensure_aware

# SQLAlchemy base
Base = declarative_base()

MoldStatusEnum = Enum(
    *MOLD_STATUSES,
    name="mold_status",
    native_enum=False,
)
MoldActionEnum = Enum(
    *MOLD_ACTIONS,
    name="mold_action",
    native_enum=False,
)


def _in_clause(values: tuple[str, ...]) -> str:
    """Render a SQL IN list for check constraints."""
    return ", ".join(f"'{value}'" for value in values)


# Database models
class Mold(Base):
    """Physical mold tracked through its lifecycle."""

    __tablename__ = "molds"
    __table_args__ = (
        CheckConstraint("max_shots > 0", name="ck_molds_max_shots_positive"),
        CheckConstraint("current_shots >= 0", name="ck_molds_current_shots_non_negative"),
        CheckConstraint(
            f"status IN ({_in_clause(MOLD_STATUSES)})",
            name="ck_molds_status",
        ),
        CheckConstraint(
            "(status = 'in-use' AND operator_name IS NOT NULL AND machine IS NOT NULL) "
            "OR (status <> 'in-use' AND operator_name IS NULL AND machine IS NULL)",
            name="ck_molds_assignment_matches_status",
        ),
    )

    id = Column(String(200), primary_key=True)
    model = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    max_shots = Column(Integer, nullable=False)
    current_shots = Column(Integer, nullable=False, default=0)
    status = Column(MoldStatusEnum, nullable=False, default="available")
    operator_name = Column(String(200), nullable=True)
    machine = Column(String(200), nullable=True)
    last_maintenance = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def assignment(self) -> Assignment:
        """Return who holds the mold, derived from the stored columns."""
        return assignment_from_columns(self.operator_name, self.machine)


class MoldLog(Base):
    """Append-only audit entry written by every registry mutation.

    ``mold_id`` is a plain column, not a foreign key, so entries outlive the
    mold they describe.
    """

    __tablename__ = "mold_logs"
    __table_args__ = (
        CheckConstraint(
            f"action IN ({_in_clause(MOLD_ACTIONS)})",
            name="ck_mold_logs_action",
        ),
        CheckConstraint(
            "shots_added IS NULL OR shots_added >= 0",
            name="ck_mold_logs_shots_added_non_negative",
        ),
        Index("ix_mold_logs_mold_id", "mold_id"),
        Index("ix_mold_logs_timestamp", "timestamp"),
    )

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    mold_id = Column(String(200), nullable=False)
    action = Column(MoldActionEnum, nullable=False)
    operator_name = Column(String(200), nullable=True)
    machine = Column(String(200), nullable=True)
    shots_added = Column(Integer, nullable=True)
    note = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)


@event.listens_for(Mold, "load")
def _normalize_mold_on_load(target: Mold, _context: object) -> None:
    """Ensure loaded mold timestamps retain timezone awareness."""
    target.last_maintenance = ensure_aware(target.last_maintenance)
    target.created_at = ensure_aware(target.created_at)
    target.updated_at = ensure_aware(target.updated_at)


@event.listens_for(MoldLog, "load")
def _normalize_mold_log_on_load(target: MoldLog, _context: object) -> None:
    """Ensure loaded audit timestamps retain timezone awareness."""
    target.timestamp = ensure_aware(target.timestamp)


# Pydantic models for presentation/serialization
class MoldView(BaseModel):
    """Read-only mold projection."""

    id: str
    model: str
    name: str
    max_shots: int
    current_shots: int
    status: str
    operator_name: Optional[str]
    machine: Optional[str]
    last_maintenance: datetime

    model_config = ConfigDict(from_attributes=True)


class MoldLogView(BaseModel):
    """Read-only audit entry projection."""

    log_id: int
    mold_id: str
    action: str
    operator_name: Optional[str]
    machine: Optional[str]
    shots_added: Optional[int]
    note: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
