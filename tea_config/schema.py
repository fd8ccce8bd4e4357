"""
Settings schema (``tea_config.schema``).

Responsibility
--------------
Defines the frozen ``Settings`` dataclass every runtime component reads its
tunables from, plus the defaults it falls back to.

Architecture position
---------------------
**Config layer.**  Depends on SQLAlchemy only to parse the database URL;
never on the kernel.

Invariants enforced
-------------------
* ``Settings`` is frozen; nothing mutates configuration after load.
* ``__post_init__`` rejects out-of-range values with ``ValueError``.
* ``public_status()`` never includes the signing secret, the default
  administrator password, or database credentials.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any

from sqlalchemy.engine import make_url

# Compiled-in development secret.  Deployments must set JWT_SECRET.
DEFAULT_JWT_SECRET = "tea-collection-secret-key-change-in-prod"

DEFAULT_DATABASE_URL = "sqlite:///tea_collection.db"

MIN_BCRYPT_ROUNDS = 4
MAX_BCRYPT_ROUNDS = 31


def normalize_database_url(url: str) -> str:
    """Accept the ``postgres://`` scheme hosted providers hand out."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the collection ledger."""

    database_url: str = DEFAULT_DATABASE_URL
    jwt_secret: str = DEFAULT_JWT_SECRET
    token_ttl_days: int = 7
    admin_username: str = "admin"
    admin_default_password: str = "admin"
    min_password_length: int = 4
    bcrypt_rounds: int = 10
    pool_size: int = 10
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        object.__setattr__(self, "database_url", normalize_database_url(self.database_url))
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if not self.jwt_secret:
            raise ValueError("jwt_secret must not be empty")
        if not self.admin_username.strip():
            raise ValueError("admin_username must not be empty")
        if self.token_ttl_days < 1:
            raise ValueError(f"token_ttl_days must be >= 1, got {self.token_ttl_days}")
        if self.min_password_length < 1:
            raise ValueError(
                f"min_password_length must be >= 1, got {self.min_password_length}"
            )
        if len(self.admin_default_password) < self.min_password_length:
            raise ValueError("admin_default_password is shorter than min_password_length")
        if not MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= MAX_BCRYPT_ROUNDS:
            raise ValueError(
                f"bcrypt_rounds must be between {MIN_BCRYPT_ROUNDS} and "
                f"{MAX_BCRYPT_ROUNDS}, got {self.bcrypt_rounds}"
            )
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log_level: {self.log_level}")
        object.__setattr__(self, "log_level", level)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET

    @property
    def backend(self) -> str:
        return make_url(self.database_url).get_backend_name()

    def public_status(self) -> dict[str, Any]:
        """Non-secret runtime status for operators and clients."""
        return {
            "backend": self.backend,
            "has_server_db": self.backend != "sqlite",
            "uses_default_secret": self.uses_default_secret,
            "token_ttl_days": self.token_ttl_days,
            "min_password_length": self.min_password_length,
        }
