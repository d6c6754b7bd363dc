"""Mold lifecycle vocabulary and pure transition rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MoldStatus(str, Enum):
    """Lifecycle states a registered mold can be in."""

    AVAILABLE = "available"
    IN_USE = "in-use"
    MAINTENANCE = "maintenance"


class MoldAction(str, Enum):
    """Audit log action kinds, one per registry mutation."""

    CREATE = "create"
    CHECKOUT = "checkout"
    RETURN = "return"
    MAINTENANCE = "maintenance"
    DELETE = "delete"


MOLD_STATUSES = tuple(status.value for status in MoldStatus)
MOLD_ACTIONS = tuple(action.value for action in MoldAction)

NOTE_CREATED = "new mold registered"
NOTE_CHECKED_OUT = "checked out"
NOTE_RETURNED = "returned to stock"
NOTE_LIFETIME_REACHED = "lifetime threshold reached, auto-transitioned to maintenance"
NOTE_MAINTAINED = "maintenance completed, returned to stock"
NOTE_DELETED = "mold deleted"

# Source state each guarded operation requires.
REQUIRED_STATUS: dict[MoldAction, MoldStatus] = {
    MoldAction.CHECKOUT: MoldStatus.AVAILABLE,
    MoldAction.RETURN: MoldStatus.IN_USE,
    MoldAction.MAINTENANCE: MoldStatus.MAINTENANCE,
}


@dataclass(frozen=True)
class Idle:
    """No operator or machine holds the mold."""


@dataclass(frozen=True)
class Active:
    """The mold is mounted on a machine under a named operator."""

    operator_name: str
    machine: str


Assignment = Idle | Active

IDLE = Idle()


def assignment_from_columns(operator_name: str | None, machine: str | None) -> Assignment:
    """Rebuild the assignment variant from stored nullable columns."""
    if operator_name is None and machine is None:
        return IDLE
    if operator_name is None or machine is None:
        raise ValueError("operator_name and machine must be set together.")
    return Active(operator_name=operator_name, machine=machine)


def assignment_columns(assignment: Assignment) -> tuple[str | None, str | None]:
    """Return the (operator_name, machine) column pair for an assignment."""
    if isinstance(assignment, Active):
        return assignment.operator_name, assignment.machine
    return None, None


def status_matches_assignment(status: str, assignment: Assignment) -> bool:
    """Return True when the assignment is legal for the lifecycle status."""
    if status == MoldStatus.IN_USE:
        return isinstance(assignment, Active)
    return isinstance(assignment, Idle)


@dataclass(frozen=True)
class ReturnOutcome:
    """Result of applying the auto-maintenance rule to a return."""

    current_shots: int
    status: MoldStatus
    note: str


def evaluate_return(*, current_shots: int, max_shots: int, shots_added: int) -> ReturnOutcome:
    """Accumulate shots and decide where a returned mold goes next.

    Reaching or passing the designed lifetime sends the mold to maintenance;
    otherwise it goes back to stock.
    """
    total = current_shots + shots_added
    if total >= max_shots:
        return ReturnOutcome(
            current_shots=total,
            status=MoldStatus.MAINTENANCE,
            note=NOTE_LIFETIME_REACHED,
        )
    return ReturnOutcome(current_shots=total, status=MoldStatus.AVAILABLE, note=NOTE_RETURNED)
