"""Unit tests for mold lifecycle rules."""

from __future__ import annotations

import pytest

from molds.domain import (
    IDLE,
    NOTE_LIFETIME_REACHED,
    NOTE_RETURNED,
    Active,
    Idle,
    MoldStatus,
    assignment_columns,
    assignment_from_columns,
    evaluate_return,
    status_matches_assignment,
)


def test_evaluate_return_below_lifetime_goes_back_to_stock() -> None:
    """Returns below the lifetime threshold make the mold available."""
    outcome = evaluate_return(current_shots=90, max_shots=100, shots_added=5)

    assert outcome.current_shots == 95
    assert outcome.status == MoldStatus.AVAILABLE
    assert outcome.note == NOTE_RETURNED


def test_evaluate_return_at_lifetime_requires_maintenance() -> None:
    """Reaching the lifetime exactly triggers maintenance."""
    outcome = evaluate_return(current_shots=90, max_shots=100, shots_added=10)

    assert outcome.current_shots == 100
    assert outcome.status == MoldStatus.MAINTENANCE
    assert outcome.note == NOTE_LIFETIME_REACHED


def test_evaluate_return_past_lifetime_keeps_overshoot() -> None:
    """Shots past the lifetime are recorded, not clamped."""
    outcome = evaluate_return(current_shots=95, max_shots=100, shots_added=15)

    assert outcome.current_shots == 110
    assert outcome.status == MoldStatus.MAINTENANCE


def test_assignment_round_trips_through_columns() -> None:
    """Active assignments map to both columns; idle maps to neither."""
    active = Active(operator_name="alice", machine="M1")

    assert assignment_columns(active) == ("alice", "M1")
    assert assignment_columns(IDLE) == (None, None)
    assert assignment_from_columns("alice", "M1") == active
    assert isinstance(assignment_from_columns(None, None), Idle)


@pytest.mark.parametrize(("operator_name", "machine"), [("alice", None), (None, "M1")])
def test_assignment_from_columns_rejects_half_set_pairs(
    operator_name: str | None,
    machine: str | None,
) -> None:
    """Operator and machine are only meaningful together."""
    with pytest.raises(ValueError):
        assignment_from_columns(operator_name, machine)


def test_status_matches_assignment() -> None:
    """Only in-use molds carry an active assignment."""
    active = Active(operator_name="bob", machine="L2")

    assert status_matches_assignment("in-use", active) is True
    assert status_matches_assignment("in-use", IDLE) is False
    assert status_matches_assignment("available", IDLE) is True
    assert status_matches_assignment("maintenance", active) is False
