"""
TokenService -- signed, time-limited identity assertions.

Responsibility:
    Issues HS256 JSON Web Tokens naming an account, its name and role, and
    verifies them on every authenticated request.

Architecture position:
    Kernel > Services.  Stateless: no session, no revocation list.  Time
    comes from the injected Clock, so expiry is testable.

Invariants enforced:
    - A token that fails signature, shape, or expiry verification is
      indistinguishable from no token: ``verify()`` returns None and never
      raises.
    - Tokens live for ``ttl`` (7 days by default).

Failure modes:
    - None raised to callers.  Rejections are logged at DEBUG as
      ``token_rejected`` with a reason, never with the token itself.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from tea_kernel.domain.clock import Clock, SystemClock
from tea_kernel.domain.dtos import Identity
from tea_kernel.logging_config import get_logger
from tea_kernel.models.account import AccountRole

logger = get_logger("services.token")

ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(days=7)

_SCHEME_PREFIX = "bearer "


class TokenService:
    """
    Issue and verify identity assertions.

    Contract:
        ``issue()`` is pure apart from reading the clock.  ``verify()``
        accepts the raw Authorization header value, with or without the
        ``Bearer`` scheme prefix.
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock | None = None,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._ttl = ttl
        self._clock = clock or SystemClock()

    def issue(self, account_id: UUID, name: str, role: AccountRole | str) -> str:
        """
        Produce a signed assertion for an account.

        Args:
            account_id: Account primary key.
            name: Account name.
            role: Account role.

        Returns:
            Compact JWT string.
        """
        issued_at = self._clock.timestamp()
        claims = {
            "sub": str(account_id),
            "name": name,
            "role": AccountRole(role).value,
            "iat": issued_at,
            "exp": issued_at + int(self._ttl.total_seconds()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, raw: str | None) -> Identity | None:
        """
        Resolve a raw header value to an Identity.

        Returns:
            The Identity, or None for absent, malformed, badly signed, or
            expired input.
        """
        if not raw or not isinstance(raw, str):
            return None

        token = raw.strip()
        if token[: len(_SCHEME_PREFIX)].lower() == _SCHEME_PREFIX:
            token = token[len(_SCHEME_PREFIX):].strip()
        if not token:
            return None

        try:
            # Expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.debug("token_rejected", extra={"reason": type(exc).__name__})
            return None

        try:
            expires = int(claims["exp"])
            account_id = UUID(str(claims["sub"]))
            role = AccountRole(claims["role"])
            name = str(claims["name"])
        except (KeyError, TypeError, ValueError):
            logger.debug("token_rejected", extra={"reason": "malformed_claims"})
            return None

        if self._clock.timestamp() >= expires:
            logger.debug("token_rejected", extra={"reason": "expired"})
            return None

        return Identity(
            account_id=account_id,
            name=name,
            role=role,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )
