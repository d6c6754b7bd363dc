"""Atomic mold lifecycle operations with audit logging."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models import Mold, MoldLog
from molds.audit_log_repository import MoldLogCreateInput, create_log_record
from molds.domain import (
    IDLE,
    NOTE_CHECKED_OUT,
    NOTE_CREATED,
    NOTE_DELETED,
    NOTE_MAINTAINED,
    REQUIRED_STATUS,
    Active,
    Assignment,
    MoldAction,
    MoldStatus,
    assignment_columns,
    evaluate_return,
    status_matches_assignment,
)
from molds.errors import (
    DuplicateIdError,
    InvalidTransitionError,
    MoldNotFoundError,
    MoldRegistryError,
    PersistenceError,
)
from molds.validation import require_text, validate_mold_creation, validate_shots_added
from observability import operation_context
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

SessionHandler = Callable[[Session], "MoldLog | None"]


class MoldRegistryService:
    """Service for mutating molds and their audit log in one transaction.

    Each public operation validates its inputs, applies the state change and
    appends exactly one audit entry, then commits. A storage failure rolls
    both back and surfaces as ``PersistenceError``.

    Guard failures (unknown id, wrong source status) follow the
    ``strict_transitions`` policy: strict raises ``MoldNotFoundError`` or
    ``InvalidTransitionError``; lenient returns ``None`` and writes nothing.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        strict_transitions: bool | None = None,
    ) -> None:
        """Initialize the service with a SQLAlchemy session factory."""
        self._session_factory = session_factory
        if strict_transitions is None:
            strict_transitions = settings.registry.strict_transitions
        self._strict_transitions = strict_transitions

    @property
    def strict_transitions(self) -> bool:
        """Return True when guard failures raise instead of no-op."""
        return self._strict_transitions

    def create(
        self,
        *,
        model: str,
        asset_suffix: str,
        name: str,
        max_shots: int,
        now: datetime | None = None,
    ) -> MoldLog:
        """Register a new mold as available with zero shots."""
        validated = validate_mold_creation(
            model=model,
            asset_suffix=asset_suffix,
            name=name,
            max_shots=max_shots,
        )

        def handler(session: Session) -> MoldLog:
            if session.get(Mold, validated.mold_id) is not None:
                raise DuplicateIdError(validated.mold_id)
            timestamp = self._timestamp(now)
            session.add(
                Mold(
                    id=validated.mold_id,
                    model=validated.model,
                    name=validated.name,
                    max_shots=validated.max_shots,
                    current_shots=0,
                    status=MoldStatus.AVAILABLE.value,
                    operator_name=None,
                    machine=None,
                    last_maintenance=timestamp,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
            )
            session.flush()
            return create_log_record(
                session,
                MoldLogCreateInput(
                    mold_id=validated.mold_id,
                    action=MoldAction.CREATE,
                    note=NOTE_CREATED,
                    timestamp=timestamp,
                ),
            )

        return self._run(MoldAction.CREATE, validated.mold_id, handler)

    def checkout(
        self,
        mold_id: str,
        *,
        operator_name: str,
        machine: str,
        now: datetime | None = None,
    ) -> MoldLog | None:
        """Hand an available mold to an operator on a machine."""
        mold_id = require_text("mold_id", mold_id)
        assignment = Active(
            operator_name=require_text("operator_name", operator_name),
            machine=require_text("machine", machine),
        )

        def handler(session: Session) -> MoldLog | None:
            mold = self._guard(session, mold_id, MoldAction.CHECKOUT)
            if mold is None:
                return None
            timestamp = self._timestamp(now)
            _apply_state(mold, MoldStatus.IN_USE, assignment, timestamp)
            return create_log_record(
                session,
                MoldLogCreateInput(
                    mold_id=mold_id,
                    action=MoldAction.CHECKOUT,
                    note=NOTE_CHECKED_OUT,
                    operator_name=assignment.operator_name,
                    machine=assignment.machine,
                    timestamp=timestamp,
                ),
            )

        return self._run(MoldAction.CHECKOUT, mold_id, handler)

    def return_mold(
        self,
        mold_id: str,
        *,
        shots_added: int,
        now: datetime | None = None,
    ) -> MoldLog | None:
        """Return an in-use mold, recording the shots it produced."""
        mold_id = require_text("mold_id", mold_id)
        shots_added = validate_shots_added(shots_added)

        def handler(session: Session) -> MoldLog | None:
            mold = self._guard(session, mold_id, MoldAction.RETURN)
            if mold is None:
                return None
            timestamp = self._timestamp(now)
            outcome = evaluate_return(
                current_shots=mold.current_shots,
                max_shots=mold.max_shots,
                shots_added=shots_added,
            )
            mold.current_shots = outcome.current_shots
            _apply_state(mold, outcome.status, IDLE, timestamp)
            if outcome.status == MoldStatus.MAINTENANCE:
                logger.info(
                    "Mold reached lifetime: current_shots=%s max_shots=%s",
                    outcome.current_shots,
                    mold.max_shots,
                )
            return create_log_record(
                session,
                MoldLogCreateInput(
                    mold_id=mold_id,
                    action=MoldAction.RETURN,
                    note=outcome.note,
                    shots_added=shots_added,
                    timestamp=timestamp,
                ),
            )

        return self._run(MoldAction.RETURN, mold_id, handler)

    def maintain(self, mold_id: str, *, now: datetime | None = None) -> MoldLog | None:
        """Complete maintenance and put the mold back in stock.

        The cumulative shot count is kept as is.
        """
        mold_id = require_text("mold_id", mold_id)

        def handler(session: Session) -> MoldLog | None:
            mold = self._guard(session, mold_id, MoldAction.MAINTENANCE)
            if mold is None:
                return None
            timestamp = self._timestamp(now)
            _apply_state(mold, MoldStatus.AVAILABLE, IDLE, timestamp)
            mold.last_maintenance = timestamp
            return create_log_record(
                session,
                MoldLogCreateInput(
                    mold_id=mold_id,
                    action=MoldAction.MAINTENANCE,
                    note=NOTE_MAINTAINED,
                    timestamp=timestamp,
                ),
            )

        return self._run(MoldAction.MAINTENANCE, mold_id, handler)

    def delete(self, mold_id: str, *, now: datetime | None = None) -> MoldLog | None:
        """Remove a mold in any status; its audit history is kept."""
        mold_id = require_text("mold_id", mold_id)

        def handler(session: Session) -> MoldLog | None:
            mold = self._guard(session, mold_id, MoldAction.DELETE)
            if mold is None:
                return None
            timestamp = self._timestamp(now)
            session.delete(mold)
            session.flush()
            return create_log_record(
                session,
                MoldLogCreateInput(
                    mold_id=mold_id,
                    action=MoldAction.DELETE,
                    note=NOTE_DELETED,
                    timestamp=timestamp,
                ),
            )

        return self._run(MoldAction.DELETE, mold_id, handler)

    def _guard(self, session: Session, mold_id: str, action: MoldAction) -> Mold | None:
        """Return the mold when the action is allowed, else reject per policy."""
        mold = session.get(Mold, mold_id)
        if mold is None:
            if self._strict_transitions:
                raise MoldNotFoundError(mold_id)
            logger.info("Mold %s ignored: mold not registered", action.value)
            return None
        required = REQUIRED_STATUS.get(action)
        if required is not None and mold.status != required:
            if self._strict_transitions:
                raise InvalidTransitionError(mold_id, action.value, mold.status)
            logger.info(
                "Mold %s ignored: status=%s required=%s",
                action.value,
                mold.status,
                required.value,
            )
            return None
        return mold

    def _timestamp(self, now: datetime | None) -> datetime:
        """Return the UTC timestamp for the current operation."""
        return to_utc(now or utc_now())

    def _run(self, action: MoldAction, mold_id: str, handler: SessionHandler) -> MoldLog | None:
        """Execute one registry operation as a single unit of work."""
        with operation_context(mold_id=mold_id, action=action.value):
            with closing(self._session_factory()) as session:
                session.expire_on_commit = False
                try:
                    entry = handler(session)
                    if entry is None:
                        session.rollback()
                        return None
                    session.commit()
                except SQLAlchemyError as exc:
                    session.rollback()
                    logger.exception("Mold %s failed to persist", action.value)
                    raise PersistenceError(f"failed to persist {action.value} for {mold_id}") from exc
                except MoldRegistryError as exc:
                    session.rollback()
                    logger.warning("Mold %s rejected: %s", action.value, exc)
                    raise
                except Exception:
                    session.rollback()
                    raise
            logger.info("Mold %s recorded: log_id=%s", action.value, entry.log_id)
        return entry


def _apply_state(
    mold: Mold,
    status: MoldStatus,
    assignment: Assignment,
    timestamp: datetime,
) -> None:
    """Move a mold to a status together with its matching assignment."""
    if not status_matches_assignment(status.value, assignment):
        raise ValueError(f"Assignment {assignment!r} is not valid for status {status.value}.")
    operator_name, machine = assignment_columns(assignment)
    mold.status = status.value
    mold.operator_name = operator_name
    mold.machine = machine
    mold.updated_at = timestamp
