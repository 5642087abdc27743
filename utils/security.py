"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT, with separate access and refresh secrets
- JTI generation for refresh token identifiers
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict

import jwt
from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError

from api.config import AuthSettings
from services.errors import InvalidToken

ACCESS = "access"
REFRESH = "refresh"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID)."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TokenPayload:
    """Identity claims carried by both access and refresh tokens."""

    id: str
    username: str
    role: str

    def to_claims(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "role": self.role}

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "TokenPayload":
        try:
            return cls(id=str(claims["id"]), username=claims["username"], role=claims["role"])
        except KeyError as exc:
            raise InvalidToken(f"Invalid token: missing claim {exc.args[0]}") from exc


class PasswordHasher:
    """Salted one-way hashing; the cost factor maps to Argon2 time_cost."""

    def __init__(self, settings: AuthSettings):
        self._ph = Argon2Hasher(
            time_cost=settings.hash_cost,
            memory_cost=settings.hash_memory_kib,
        )

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2"""
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password against a stored hash; never raises on mismatch"""
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False


class TokenIssuer:
    """
    Signs and verifies access and refresh JWTs.

    Access tokens are stateless. Refresh tokens are signed with a different
    secret and carry a jti so every issued refresh token is unique.
    """

    def __init__(self, settings: AuthSettings, clock: Callable[[], datetime] = utcnow):
        self.settings = settings
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def issue_access(self, payload: TokenPayload) -> str:
        return self._encode(payload, ACCESS, self.settings.access_secret, self.settings.access_ttl)

    def issue_refresh(self, payload: TokenPayload) -> str:
        return self._encode(
            payload,
            REFRESH,
            self.settings.refresh_secret,
            self.settings.refresh_ttl,
            jti=generate_jti(),
        )

    def verify_access(self, token: str) -> TokenPayload:
        return self._decode(token, ACCESS, self.settings.access_secret)

    def verify_refresh(self, token: str) -> TokenPayload:
        return self._decode(token, REFRESH, self.settings.refresh_secret)

    def refresh_expiry(self) -> datetime:
        """Expiry recorded in the store for a refresh token issued now."""
        return self.now() + self.settings.refresh_ttl

    def _encode(self, payload: TokenPayload, token_type: str, secret: str, ttl, jti: str | None = None) -> str:
        now = self.now()
        claims = payload.to_claims()
        claims.update(
            {
                "type": token_type,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
            }
        )
        if jti:
            claims["jti"] = jti
        return jwt.encode(claims, secret, algorithm=self.settings.algorithm)

    def _decode(self, token: str, expected_type: str, secret: str) -> TokenPayload:
        """
        Decode and validate a JWT. Raises InvalidToken on bad signature,
        expiry, malformed input or a token of the wrong type.
        """
        if not token or not isinstance(token, str):
            raise InvalidToken("Invalid token")
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidToken("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

        if decoded.get("type") != expected_type:
            raise InvalidToken("Wrong token type")
        return TokenPayload.from_claims(decoded)
