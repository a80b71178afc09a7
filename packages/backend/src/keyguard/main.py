"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. All process-wide secret material is turned into objects here,
once, from an explicit Settings value:
- SecretCipher   ← KEYGUARD_ENCRYPTION_KEY
- TokenVerifier  ← KEYGUARD_JWT_SECRET
- PasswordHasher ← KEYGUARD_BCRYPT_ROUNDS
They live on app.state and are only ever read after this point. Tests
pass their own Settings with throwaway keys.

Run with: uvicorn keyguard.main:create_app --factory
(or `keyguard serve`).
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keyguard import __version__
from keyguard.api import api_router
from keyguard.auth.cipher import SecretCipher
from keyguard.auth.dependencies import unauthorized_handler
from keyguard.auth.errors import Unauthorized
from keyguard.auth.jwt import TokenVerifier
from keyguard.auth.password import PasswordHasher
from keyguard.config import Settings, get_settings
from keyguard.db.engine import build_engine, build_session_factory
from keyguard.db.models import Base

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "keyguard.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if settings.create_tables:
        async with app.state.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("keyguard.tables_created")

    yield

    logger.info("keyguard.shutdown")
    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Keyguard",
        description="Token verification and at-rest protection for per-user provider API keys",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Process-wide, read-only state ─────────────────────────
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.cipher = SecretCipher(settings.encryption_key.get_secret_value())
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.token_verifier = TokenVerifier(
        settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
        leeway=settings.jwt_leeway_seconds,
    )

    # ── Uniform auth failure ──────────────────────────────────
    app.add_exception_handler(Unauthorized, unauthorized_handler)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → Security → handler

    from keyguard.middleware.request_id import RequestIdMiddleware
    from keyguard.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app
