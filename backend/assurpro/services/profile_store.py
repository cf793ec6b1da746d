# backend/assurpro/services/profile_store.py
"""
Data access for company profiles ("entreprises").

Database failures are reported as :class:`StoreError` carrying a
:class:`StoreErrorKind` derived from the PostgreSQL SQLSTATE of the driver
exception, so callers branch on a stable code.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, TypeVar
from uuid import UUID
import enum
import logging

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..models.entreprise import Entreprise
from ..schemas.auth import EntrepriseProfile

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreErrorKind(str, enum.Enum):
    DUPLICATE_KEY = "duplicate_key"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    POLICY_DENIED = "policy_denied"
    OTHER = "other"


_SQLSTATE_KINDS: Dict[str, StoreErrorKind] = {
    "23505": StoreErrorKind.DUPLICATE_KEY,          # unique_violation
    "23503": StoreErrorKind.FOREIGN_KEY_VIOLATION,  # foreign_key_violation
    "42501": StoreErrorKind.POLICY_DENIED,          # insufficient_privilege / RLS
}


class StoreError(Exception):
    def __init__(self, kind: StoreErrorKind, message: str = "", sqlstate: str | None = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.sqlstate = sqlstate


def sqlstate_of(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    # psycopg2 exposes ``pgcode``, psycopg 3 and asyncpg expose ``sqlstate``
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def classify_db_error(exc: DBAPIError) -> StoreError:
    code = sqlstate_of(exc)
    kind = _SQLSTATE_KINDS.get(code or "", StoreErrorKind.OTHER)
    return StoreError(kind, str(getattr(exc, "orig", exc)), sqlstate=code)


def to_profile(row: Entreprise) -> EntrepriseProfile:
    return EntrepriseProfile.model_validate(row).model_copy(update={"persisted": True})


class ProfileStore:
    """
    Async facade over a request-scoped SQLAlchemy session.

    Each call runs in the threadpool; calls on one store are awaited one
    after another, so the session is never used by two threads at once.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    async def _run(self, fn: Callable[[], T]) -> T:
        return await run_in_threadpool(fn)

    def _guarded(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except DBAPIError as exc:
            self.db.rollback()
            raise classify_db_error(exc) from exc

    # -- reads -----------------------------------------------------------

    async def get(self, entreprise_id: UUID) -> EntrepriseProfile | None:
        def _get() -> EntrepriseProfile | None:
            row = self.db.get(Entreprise, entreprise_id, populate_existing=True)
            return to_profile(row) if row is not None else None

        return await self._run(lambda: self._guarded(_get))

    async def email_taken_by_other(self, email: str, entreprise_id: UUID) -> bool:
        def _check() -> bool:
            hit = (
                self.db.query(Entreprise.id)
                .filter(Entreprise.email == email, Entreprise.id != entreprise_id)
                .first()
            )
            return hit is not None

        return await self._run(lambda: self._guarded(_check))

    # -- writes ----------------------------------------------------------

    async def insert(self, entreprise_id: UUID, fields: Dict[str, Any]) -> EntrepriseProfile:
        def _insert() -> EntrepriseProfile:
            row = Entreprise(id=entreprise_id, **fields)
            self.db.add(row)
            # on failure the rollback in _guarded also discards the pending row
            self.db.commit()
            self.db.refresh(row)
            return to_profile(row)

        return await self._run(lambda: self._guarded(_insert))

    async def update_fields(self, entreprise_id: UUID, fields: Dict[str, Any]) -> EntrepriseProfile | None:
        def _update() -> EntrepriseProfile | None:
            row = self.db.get(Entreprise, entreprise_id)
            if row is None:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(row)
            return to_profile(row)

        return await self._run(lambda: self._guarded(_update))

    async def set_email_verified(self, entreprise_id: UUID, verified: bool) -> None:
        def _set() -> None:
            (
                self.db.query(Entreprise)
                .filter(Entreprise.id == entreprise_id)
                .update({Entreprise.email_verified: verified}, synchronize_session=False)
            )
            self.db.commit()

        await self._run(lambda: self._guarded(_set))
