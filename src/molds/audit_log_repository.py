"""Repository helpers for the append-only mold audit log."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import MoldLog
from molds.domain import MoldAction
from molds.errors import PersistenceError
from time_utils import to_utc, utc_now


@dataclass(frozen=True)
class MoldLogCreateInput:
    """Input payload for appending a mold audit entry."""

    mold_id: str
    action: MoldAction
    note: str
    operator_name: str | None = None
    machine: str | None = None
    shots_added: int | None = None
    timestamp: datetime | None = None


class MoldAuditLogRepository:
    """Read access to the mold audit log.

    Entries are only ever written by ``create_log_record`` inside a registry
    transaction; this repository exposes no update or delete operations.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def list_entries(self, *, limit: int | None = None) -> list[MoldLog]:
        """Return all audit entries, most recent first."""

        def handler(session: Session) -> list[MoldLog]:
            query = session.query(MoldLog).order_by(
                MoldLog.timestamp.desc(),
                MoldLog.log_id.desc(),
            )
            if limit is not None:
                query = query.limit(limit)
            return list(query.all())

        return self._execute(handler)

    def list_for_mold(self, mold_id: str, *, limit: int | None = None) -> list[MoldLog]:
        """Return audit entries for one mold id, most recent first.

        Entries for deleted molds are still returned.
        """

        def handler(session: Session) -> list[MoldLog]:
            query = (
                session.query(MoldLog)
                .filter(MoldLog.mold_id == mold_id)
                .order_by(
                    MoldLog.timestamp.desc(),
                    MoldLog.log_id.desc(),
                )
            )
            if limit is not None:
                query = query.limit(limit)
            return list(query.all())

        return self._execute(handler)

    def _execute(self, handler):
        """Execute read work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f"audit log read failed: {exc}") from exc
        return result


def create_log_record(
    session: Session,
    payload: MoldLogCreateInput,
) -> MoldLog:
    """Append an audit entry using an existing session."""
    timestamp = to_utc(payload.timestamp or utc_now())
    entry = MoldLog(
        mold_id=payload.mold_id,
        action=MoldAction(payload.action).value,
        operator_name=payload.operator_name,
        machine=payload.machine,
        shots_added=payload.shots_added,
        note=payload.note,
        timestamp=timestamp,
    )
    session.add(entry)
    session.flush()
    return entry
