"""Read projections over registered molds."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Mold
from molds.domain import MoldStatus
from molds.errors import PersistenceError


@dataclass(frozen=True)
class StatusSummary:
    """Mold counts per lifecycle status."""

    total: int
    available: int
    in_use: int
    maintenance: int


class MoldRepository:
    """Repository for mold lookups, search and status counts."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def get_by_id(self, mold_id: str) -> Mold | None:
        """Fetch a mold by its id."""

        def handler(session: Session) -> Mold | None:
            return session.get(Mold, mold_id)

        return self._execute(handler)

    def list_molds(self, *, search: str | None = None) -> list[Mold]:
        """Return molds ordered by id, optionally filtered by a search term.

        The term is matched case-insensitively as a substring of the id,
        name or model.
        """

        def handler(session: Session) -> list[Mold]:
            query = session.query(Mold)
            term = (search or "").strip()
            if term:
                query = query.filter(
                    or_(
                        Mold.id.icontains(term, autoescape=True),
                        Mold.name.icontains(term, autoescape=True),
                        Mold.model.icontains(term, autoescape=True),
                    )
                )
            return list(query.order_by(Mold.id.asc()).all())

        return self._execute(handler)

    def count_by_status(self) -> StatusSummary:
        """Return the total mold count and the count per status."""

        def handler(session: Session) -> StatusSummary:
            rows = session.query(Mold.status, func.count(Mold.id)).group_by(Mold.status).all()
            counts = {status: int(count) for status, count in rows}
            return StatusSummary(
                total=sum(counts.values()),
                available=counts.get(MoldStatus.AVAILABLE.value, 0),
                in_use=counts.get(MoldStatus.IN_USE.value, 0),
                maintenance=counts.get(MoldStatus.MAINTENANCE.value, 0),
            )

        return self._execute(handler)

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(f"mold read failed: {exc}") from exc
        return result
