"""
Environment-aware configuration.
Flask config classes read from the environment (and .env); AuthSettings is the
immutable view of the auth-related keys handed to the hasher and token issuer.
"""
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from dotenv import load_dotenv

load_dotenv()  # Read .env if present

_TTL_RE = re.compile(r"^(\d+)([mhd])$")
_TTL_UNITS = {"m": "minutes", "h": "hours", "d": "days"}

# Published fallbacks; production refuses to start with either of them
DEV_ACCESS_SECRET = "dev-access-secret-change-me-in-production"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me-in-production"


def parse_ttl(label: str) -> timedelta:
    """
    Resolve a TTL label such as "15m", "2h" or "7d" to a timedelta.
    Raises ValueError for anything else.
    """
    match = _TTL_RE.match(str(label).strip())
    if not match:
        raise ValueError(f"Invalid TTL {label!r}: expected <N>m, <N>h or <N>d")
    amount, unit = match.groups()
    ttl = timedelta(**{_TTL_UNITS[unit]: int(amount)})
    if ttl <= timedelta(0):
        raise ValueError(f"Invalid TTL {label!r}: must be positive")
    return ttl


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///library.db")
    SQL_ECHO = False

    # Access and refresh tokens are signed with different secrets
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    ACCESS_TOKEN_TTL = os.getenv("ACCESS_TOKEN_TTL", "2h")
    REFRESH_TOKEN_TTL = os.getenv("REFRESH_TOKEN_TTL", "7d")

    # Argon2 cost: time_cost (iterations) and memory_cost (KiB)
    PASSWORD_HASH_COST = int(os.getenv("PASSWORD_HASH_COST", "10"))
    PASSWORD_HASH_MEMORY_KIB = int(os.getenv("PASSWORD_HASH_MEMORY_KIB", "65536"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")


class ProductionConfig(BaseConfig):
    DEBUG = False


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    # cheap hashing keeps the suite fast
    PASSWORD_HASH_COST = 1
    PASSWORD_HASH_MEMORY_KIB = 1024


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl_label: str = "2h"
    refresh_ttl_label: str = "7d"
    hash_cost: int = 10
    hash_memory_kib: int = 65536

    def __post_init__(self):
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set")
        if self.hash_cost < 1:
            raise ValueError("PASSWORD_HASH_COST must be >= 1")
        # fail at startup rather than at the first login
        parse_ttl(self.access_ttl_label)
        parse_ttl(self.refresh_ttl_label)

    @property
    def access_ttl(self) -> timedelta:
        return parse_ttl(self.access_ttl_label)

    @property
    def refresh_ttl(self) -> timedelta:
        return parse_ttl(self.refresh_ttl_label)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        return cls(
            access_secret=config["JWT_ACCESS_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl_label=config.get("ACCESS_TOKEN_TTL", "2h"),
            refresh_ttl_label=config.get("REFRESH_TOKEN_TTL", "7d"),
            hash_cost=int(config.get("PASSWORD_HASH_COST", 10)),
            hash_memory_kib=int(config.get("PASSWORD_HASH_MEMORY_KIB", 65536)),
        )
