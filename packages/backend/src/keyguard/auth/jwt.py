"""JWT verification.

Learn: JWT (JSON Web Token) provides stateless authentication. The token
is issued elsewhere; here we only check it. A valid token must:
- be signed with the process-wide secret (HS256 by default)
- carry an `exp` claim that hasn't passed
- carry an identity claim (`sub`, or `id` for tokens from older issuers)

Failures are split into typed TokenErrors so the gate can log *why*
a token was rejected. None of that detail leaves the process.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import jwt


class TokenError(Exception):
    """Raised when token verification fails."""

    reason = "invalid_token"


class MissingTokenError(TokenError):
    reason = "missing_token"


class MalformedTokenError(TokenError):
    reason = "malformed_token"


class BadSignatureError(TokenError):
    reason = "bad_signature"


class ExpiredTokenError(TokenError):
    reason = "expired_token"


@dataclass(frozen=True)
class VerifiedToken:
    """Claims extracted from a token that passed verification."""

    identity_id: str
    expiry: datetime


class TokenVerifier:
    """Checks signature and expiry of bearer tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", leeway: int = 0):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.leeway = leeway

    def verify(self, token: str | None) -> VerifiedToken:
        """Verify and decode a JWT.

        Returns the identity and expiry on success.
        Raises a TokenError subclass on failure.
        """
        if not token:
            raise MissingTokenError("No token supplied")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError("Token has expired")
        except jwt.InvalidSignatureError:
            raise BadSignatureError("Token signature is invalid")
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Invalid token: {e}")

        identity = payload.get("sub") or payload.get("id")
        if not identity:
            raise MalformedTokenError("Token carries no identity claim")

        # PyJWT only checks that exp is in the future, not that it's a real date
        try:
            expiry = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise MalformedTokenError("Token expiry out of range")

        return VerifiedToken(identity_id=str(identity), expiry=expiry)
