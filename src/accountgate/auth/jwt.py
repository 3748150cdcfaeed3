"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (30min), used for API calls
- Refresh token: long-lived (~1.5 years), tracked server-side, single use
- Selection token: short-lived, only lists the Users of one Account

The codec is built with the signing secret injected, rather than reading
it from settings on every call. Expiry is checked twice on verify: once
by PyJWT against wall-clock time and once against the codec's own clock.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from pydantic import ValidationError

from accountgate.auth.claims import SelectionClaims, SessionClaims, claims_adapter


class TokenError(Exception):
    """Raised when token creation/verification fails."""


class TokenExpiredError(TokenError):
    """Raised when a token's embedded expiry has passed."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Signs and verifies purpose-tagged claims with one symmetric secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def sign(self, claims: SessionClaims | SelectionClaims, ttl: timedelta) -> str:
        """Sign claims, valid for ``ttl`` from the codec's current time."""
        issued = self._clock()
        payload = claims.model_dump(by_alias=True)
        payload.update(
            {
                "iat": int(issued.timestamp()),
                "exp": int((issued + ttl).timestamp()),
                "jti": uuid.uuid4().hex,
            }
        )
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> SessionClaims | SelectionClaims:
        """Verify and decode a token.

        Returns the typed claims on success.
        Raises TokenExpiredError for expired tokens, TokenError otherwise.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

        try:
            claims = claims_adapter.validate_python(payload)
        except ValidationError as e:
            raise TokenError(f"Unrecognised token claims: {e.error_count()} error(s)")

        if claims.expires_at <= self._clock():
            raise TokenExpiredError("Token has expired")
        return claims
