"""
CredentialStore: the persistence operations the auth service relies on.

Refresh tokens are kept one row per user. The upsert is a single
INSERT ... ON CONFLICT (user_id) DO UPDATE statement on SQLite and PostgreSQL,
so concurrent logins for the same user never create a second row and the
last writer wins. Other dialects fall back to a row lock (SELECT ... FOR UPDATE).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.sql import func

from models import storage as default_storage
from models.base_model import _uuid_str
from models.refresh_token import RefreshToken
from models.user import User, UserRole

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def ensure_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class CredentialStore:
    def __init__(self, storage=None):
        self.storage = storage or default_storage

    @property
    def session(self):
        return self.storage.get_session()

    # users

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.session.query(User).filter(User.username == username).first()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.storage.get(User, user_id)

    def insert_user(self, username: str, email: str, password_hash: str, role: UserRole = UserRole.USER) -> User:
        """Insert a user; a duplicate username surfaces as IntegrityError."""
        user = User(username=username, email=email, password_hash=password_hash, role=role)
        self.storage.new(user)
        self.storage.save()
        # load server-side timestamps
        self.session.refresh(user)
        return user

    # refresh tokens

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        return (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token == token)
            .execution_options(populate_existing=True)
            .first()
        )

    def get_refresh_token_for_user(self, user_id: str) -> Optional[RefreshToken]:
        return (
            self.session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .execution_options(populate_existing=True)
            .first()
        )

    def upsert_refresh_token(self, user_id: str, token: str, expires_at: datetime) -> None:
        insert = _UPSERT_DIALECTS.get(self.storage.dialect)
        if insert is None:
            self._locked_upsert(user_id, token, expires_at)
            return

        stmt = insert(RefreshToken).values(
            id=_uuid_str(),
            user_id=user_id,
            token=token,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RefreshToken.user_id],
            set_={
                "token": stmt.excluded.token,
                "expires_at": stmt.excluded.expires_at,
                "updated_at": func.now(),
            },
        )
        self.session.execute(stmt)
        self.storage.save()

    def _locked_upsert(self, user_id: str, token: str, expires_at: datetime) -> None:
        row = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .with_for_update()
            .first()
        )
        if row:
            row.token = token
            row.expires_at = expires_at
        else:
            self.storage.new(RefreshToken(user_id=user_id, token=token, expires_at=expires_at))
        self.storage.save()

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str, expires_at: datetime) -> bool:
        """
        Swap old_token for new_token in one statement.
        Returns False when the row no longer holds old_token (already rotated or revoked).
        """
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.token == old_token)
            .values(token=new_token, expires_at=expires_at, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        self.storage.save()
        return result.rowcount == 1

    def delete_refresh_token(self, token: str) -> bool:
        result = self.session.execute(
            delete(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(synchronize_session=False)
        )
        self.storage.save()
        return result.rowcount > 0
