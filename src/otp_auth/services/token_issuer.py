"""Session token issuer — signs short-lived JWTs for authenticated identities."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from jose import jwt


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionTokenIssuer:
    """Produces HMAC-signed bearer tokens.

    Tokens carry ``sub``/``user_id`` (the identity), ``email``, ``iat`` and
    ``exp``.  Verification belongs to downstream services.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_seconds: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=expire_seconds)
        self._clock = clock

    def issue(self, identity: int, email: str) -> str:
        issued_at = self._clock()
        claims = {
            "sub": str(identity),
            "user_id": identity,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)
