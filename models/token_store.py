"""
RefreshTokenStore: persistence for refresh token records.

Every operation runs in its own short session and commits before returning,
so reads always reflect committed state and no lock outlives a call.
The used=False -> True flip is a single conditional UPDATE; its row count,
not a prior read, decides whether the caller won.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Iterator, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from models.db_storage import DBStorage
from models.errors import StorageUnavailable
from models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


class RotationResult(str, Enum):
    ROTATED_OK = "ROTATED_OK"
    LOST_RACE = "LOST_RACE"


class RefreshTokenStore:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._storage.new_session()
        try:
            yield session
            session.commit()
        except (OperationalError, InterfaceError) as exc:
            session.rollback()
            logger.error("token store unreachable: %s", exc.__class__.__name__)
            raise StorageUnavailable("Token store unavailable") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _consume(session: Session, jti: str) -> RotationResult:
        affected = (
            session.query(RefreshToken)
            .filter(
                RefreshToken.jti == jti,
                RefreshToken.used.is_(False),
                RefreshToken.revoked.is_(False),
            )
            .update({RefreshToken.used: True}, synchronize_session=False)
        )
        return RotationResult.ROTATED_OK if affected == 1 else RotationResult.LOST_RACE

    def add(self, record: RefreshToken) -> RefreshToken:
        with self._session() as session:
            session.add(record)
        return record

    def get_by_jti(self, jti: str) -> Optional[RefreshToken]:
        with self._session() as session:
            return session.query(RefreshToken).filter(RefreshToken.jti == jti).first()

    def list_family(self, family_id: str) -> List[RefreshToken]:
        with self._session() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.family_id == family_id)
                .order_by(RefreshToken.created_at.asc())
                .all()
            )

    def mark_used(self, jti: str) -> RotationResult:
        """Conditional used=False -> True; LOST_RACE if the row was not in ISSUED state."""
        with self._session() as session:
            return self._consume(session, jti)

    def consume_and_replace(self, jti: str, successor: RefreshToken) -> RotationResult:
        """
        Consume `jti` and insert its successor in one transaction.
        The successor is only written when this caller won the conditional update,
        so anyone who later sees the consumed row also sees the successor.
        """
        with self._session() as session:
            result = self._consume(session, jti)
            if result is RotationResult.LOST_RACE:
                session.rollback()
                return result
            session.add(successor)
            return result

    def revoke_family(self, family_id: str) -> int:
        with self._session() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.family_id == family_id, RefreshToken.revoked.is_(False))
                .update({RefreshToken.revoked: True}, synchronize_session=False)
            )

    def revoke_user(self, user_id: str) -> int:
        with self._session() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
                .update({RefreshToken.revoked: True}, synchronize_session=False)
            )

    def revoke_token(self, jti: str) -> int:
        """Retire a single record (logout): used and revoked, siblings untouched."""
        with self._session() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.jti == jti)
                .update(
                    {RefreshToken.used: True, RefreshToken.revoked: True},
                    synchronize_session=False,
                )
            )

    def prune(self, expired_before: datetime) -> int:
        """Maintenance only: delete rows that expired before the cutoff and are already flagged."""
        with self._session() as session:
            return (
                session.query(RefreshToken)
                .filter(
                    RefreshToken.expires_at < expired_before,
                    or_(RefreshToken.used.is_(True), RefreshToken.revoked.is_(True)),
                )
                .delete(synchronize_session=False)
            )
