"""AuthGate — turns an Authorization header into an authenticated user.

Learn: The gate runs a fixed sequence and stops at the first failure:
1. Header must be exactly "Bearer <token>" (scheme is case-sensitive)
2. TokenVerifier checks signature + expiry
3. The identity is resolved through the user lookup, without the hash
4. No user for a valid token (e.g. deleted account) is a failure too

Every failure raises Unauthorized. The reason is logged here and then
dropped; the API layer maps all of them to the same 401.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

import structlog

from keyguard.auth.errors import Unauthorized
from keyguard.auth.jwt import TokenError, TokenVerifier, VerifiedToken
from keyguard.db.models import UserRecord

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "

# Never loaded on an authenticated user
HIDDEN_FIELDS = ("password_hash",)


class UserLookup(Protocol):
    async def find_by_id(
        self, identity_id: str, *, exclude: Iterable[str] = ()
    ) -> Optional[UserRecord]: ...


@dataclass
class AuthenticatedContext:
    """The authenticated identity attached to a request."""

    user: UserRecord
    token: VerifiedToken

    @property
    def identity_id(self) -> str:
        return self.token.identity_id


def _reject(reason: str) -> Unauthorized:
    logger.info("keyguard.auth.rejected", reason=reason)
    return Unauthorized(reason)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header value."""
    if not authorization:
        raise _reject("missing_header")
    if not authorization.startswith(BEARER_PREFIX):
        raise _reject("bad_scheme")
    token = authorization[len(BEARER_PREFIX):]
    if not token:
        raise _reject("empty_token")
    return token


class AuthGate:
    """Authorizes requests with a TokenVerifier and a user lookup."""

    def __init__(self, verifier: TokenVerifier, users: UserLookup):
        self.verifier = verifier
        self.users = users

    async def authorize(self, authorization: Optional[str]) -> AuthenticatedContext:
        token = extract_bearer_token(authorization)

        try:
            verified = self.verifier.verify(token)
        except TokenError as e:
            raise _reject(e.reason) from None

        user = await self.users.find_by_id(verified.identity_id, exclude=HIDDEN_FIELDS)
        if user is None:
            raise _reject("identity_not_found")

        return AuthenticatedContext(user=user, token=verified)
