"""
AuthService: registration, login, refresh-token rotation, logout and profile
lookup on top of the credential store, the password hasher and the token issuer.

Session lifecycle:
  Anonymous -> Authenticated (access token valid)
            -> AccessExpired (refresh token valid, rotate on use)
            -> Revoked / Expired (row deleted or expires_at passed)

One refresh token is active per user: a new login replaces the previous one.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.credential_store import CredentialStore, ensure_utc
from models.user import User, UserRole
from services.errors import (
    AuthError,
    Conflict,
    InternalError,
    InvalidCredentials,
    InvalidToken,
    MissingInput,
    NotFound,
    TokenExpired,
    Unauthorized,
)
from utils.security import PasswordHasher, TokenIssuer, TokenPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: str  # access TTL label, e.g. "2h"


def _store_errors(fn):
    """Roll back and report store failures as InternalError."""

    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except AuthError:
            raise
        except SQLAlchemyError as exc:
            self.store.storage.rollback()
            logger.exception("%s failed on the credential store", fn.__name__)
            raise InternalError() from exc

    return wrapper


def _blank(name, value):
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    # a password is taken as typed, so only "" counts as missing
    return value == "" if name == "password" else not value.strip()


def _require(**fields):
    missing = [name for name, value in fields.items() if _blank(name, value)]
    if missing:
        raise MissingInput(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")


class AuthService:
    def __init__(self, store: CredentialStore, hasher: PasswordHasher, issuer: TokenIssuer):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        # unknown usernames are verified against this so every failed login costs one Argon2 verify
        self._dummy_hash = hasher.hash(secrets.token_urlsafe(16))

    @_store_errors
    def register(self, username: str, email: str, password: str, role: UserRole = UserRole.USER) -> User:
        """
        Create a user with a hashed password. Whether the caller may ask for
        the admin role is decided by the caller.
        """
        _require(username=username, email=email, password=password)
        if self.store.get_user_by_username(username):
            raise Conflict("username already taken")

        password_hash = self.hasher.hash(password)
        try:
            user = self.store.insert_user(username, email, password_hash, UserRole(role))
        except IntegrityError as exc:
            # lost a race with a concurrent registration
            self.store.storage.rollback()
            raise Conflict("username already taken") from exc
        logger.info("Registered user %s (%s)", user.username, user.role.value)
        return user

    @_store_errors
    def login(self, username: str, password: str) -> IssuedTokens:
        _require(username=username, password=password)
        user = self.store.get_user_by_username(username)
        password_hash = user.password_hash if user and user.password_hash else self._dummy_hash
        verified = self.hasher.verify(password, password_hash)
        if not user or not verified:
            logger.info("Rejected login for %s", username)
            raise InvalidCredentials()

        payload = TokenPayload(id=user.id, username=user.username, role=user.role.value)
        tokens = self._issue(payload)
        # replaces any session the user already had
        self.store.upsert_refresh_token(user.id, tokens.refresh_token, self.issuer.refresh_expiry())
        logger.info("User %s logged in", user.username)
        return tokens

    @_store_errors
    def refresh(self, refresh_token: Optional[str]) -> IssuedTokens:
        _require(refreshToken=refresh_token)

        stored = self.store.get_refresh_token(refresh_token)
        if not stored:
            raise InvalidToken("Invalid refresh token")

        if ensure_utc(stored.expires_at) <= self.issuer.now():
            self.store.delete_refresh_token(refresh_token)
            logger.info("Discarded expired refresh token of user %s", stored.user_id)
            raise TokenExpired()

        payload = self.issuer.verify_refresh(refresh_token)
        if payload.id != stored.user_id:
            raise InvalidToken("Invalid refresh token")

        tokens = self._issue(payload)
        rotated = self.store.rotate_refresh_token(
            stored.user_id, refresh_token, tokens.refresh_token, self.issuer.refresh_expiry()
        )
        if not rotated:
            logger.warning("Refresh token of user %s was already rotated", stored.user_id)
            raise InvalidToken("Invalid refresh token")
        return tokens

    @_store_errors
    def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke a refresh token. Unknown tokens are ignored."""
        _require(refreshToken=refresh_token)
        if self.store.delete_refresh_token(refresh_token):
            logger.info("Refresh token revoked")

    @_store_errors
    def get_profile(self, identity: Optional[TokenPayload]) -> User:
        if identity is None:
            raise Unauthorized()
        user = self.store.get_user_by_id(identity.id)
        if not user:
            raise NotFound("User not found")
        return user

    def _issue(self, payload: TokenPayload) -> IssuedTokens:
        return IssuedTokens(
            access_token=self.issuer.issue_access(payload),
            refresh_token=self.issuer.issue_refresh(payload),
            expires_in=self.issuer.settings.access_ttl_label,
        )
