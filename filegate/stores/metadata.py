"""
Metadata store: the relational ledger of users, issued credentials and shares.

No business logic lives here; each method is one typed lookup or insert.
Database errors leave this module as ``UpstreamFailure`` tagged with the
operation that failed.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from filegate.core.errors import UpstreamFailure, ValidationError
from filegate.models.credential import AccessCredential
from filegate.models.share import SHARE_OPERATIONS, ShareRecord
from filegate.models.user import User

logger = logging.getLogger(__name__)

STORE_NAME = "metadata-store"


class MetadataStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamFailure(STORE_NAME, operation, str(exc.__cause__ or exc)) from exc
        finally:
            session.close()

    # --- users ---

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session("get_user") as session:
            return session.get(User, user_id)

    def insert_user(self, user_id: str, phash: Optional[str] = None, locked: Optional[bool] = False) -> bool:
        """
        Insert a user row unless one already exists.

        Returns True when this call created the row. A concurrent insert that
        wins between the check and the commit shows up as an IntegrityError on
        the primary key and is treated the same as "already present".
        """
        if not user_id:
            raise ValidationError("userId is required to insert a user.")

        with self._session("insert_user") as session:
            if session.get(User, user_id) is not None:
                return False

            session.add(User(user_id=user_id, phash=phash, locked=locked))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info("User %s inserted concurrently, keeping existing row", user_id)
                return False
            return True

    # --- credentials ---

    def insert_credential(self, user_id: str, token: str, start: datetime, end: datetime) -> AccessCredential:
        if not user_id:
            raise ValidationError("userId is required to insert an access credential.")

        credential = AccessCredential(user_id=user_id, token=token, start_time=start, end_time=end)
        with self._session("insert_credential") as session:
            session.add(credential)
            session.commit()
        return credential

    def list_credentials(self, user_id: str) -> List[AccessCredential]:
        with self._session("list_credentials") as session:
            return (
                session.query(AccessCredential)
                .filter(AccessCredential.user_id == user_id)
                .order_by(AccessCredential.id.asc())
                .all()
            )

    def get_credential(self, user_id: str, now: Optional[datetime] = None) -> Optional[AccessCredential]:
        """
        Return the tenant's credential that is valid at ``now``.

        When more than one row is valid the first-issued one is returned, so
        every caller sees the same token for as long as it stays valid.
        """
        now = now or datetime.now(timezone.utc)
        with self._session("get_credential") as session:
            return (
                session.query(AccessCredential)
                .filter(
                    AccessCredential.user_id == user_id,
                    AccessCredential.start_time <= now,
                    AccessCredential.end_time > now,
                )
                .order_by(AccessCredential.id.asc())
                .first()
            )

    # --- shares ---

    def insert_share(
        self,
        share_uuid: str,
        name: str,
        url: str,
        user_id: str,
        source_etag: str,
        operation: str,
    ) -> ShareRecord:
        if operation not in SHARE_OPERATIONS:
            raise ValidationError(f"Unsupported share operation '{operation}'.")

        record = ShareRecord(
            uuid=share_uuid,
            name=name,
            url=url,
            user_id=user_id,
            source_etag=source_etag,
            operation=operation,
        )
        with self._session("insert_share") as session:
            session.add(record)
            session.commit()
        return record

    def list_shares(self, user_id: str) -> List[ShareRecord]:
        with self._session("list_shares") as session:
            return (
                session.query(ShareRecord)
                .filter(ShareRecord.user_id == user_id)
                .order_by(ShareRecord.created_at.asc(), ShareRecord.id.asc())
                .all()
            )
