"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request. The shared crypto
objects (cipher, hasher, verifier) are built once in create_app()
and read from app.state here.

Failure handling: AuthGate raises Unauthorized, and the exception
handler registered in main.py answers with unauthorized_response().
That one function ignores the failure reason, so a missing header, a
forged token, an expired token and a deleted user all look the same.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from keyguard.auth.cipher import SecretCipher
from keyguard.auth.errors import UNAUTHORIZED_MESSAGE, Unauthorized
from keyguard.auth.gate import AuthenticatedContext, AuthGate
from keyguard.auth.password import PasswordHasher
from keyguard.db.engine import get_db
from keyguard.db.store import UserStore


def get_cipher(request: Request) -> SecretCipher:
    return request.app.state.cipher


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def get_user_store(
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
    hasher: PasswordHasher = Depends(get_hasher),
) -> UserStore:
    return UserStore(db, cipher, hasher)


def get_auth_gate(
    request: Request,
    users: UserStore = Depends(get_user_store),
) -> AuthGate:
    return AuthGate(request.app.state.token_verifier, users)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    gate: AuthGate = Depends(get_auth_gate),
) -> AuthenticatedContext:
    """Extract current identity (required — uniform 401 if anything is off).

    user_id is bound for the rest of the request's log lines; the
    RequestIdMiddleware clears contextvars at the start of every request.
    """
    context = await gate.authorize(authorization)
    request.state.user = context.user
    structlog.contextvars.bind_contextvars(user_id=context.identity_id)
    return context


def unauthorized_response() -> JSONResponse:
    """The only response shape an authorization failure can produce."""
    return JSONResponse(
        status_code=401,
        content={"error": UNAUTHORIZED_MESSAGE},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    return unauthorized_response()
