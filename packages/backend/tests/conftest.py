"""Test fixtures — a fresh app + SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test builds its own Settings with throwaway secrets and a SQLite
   file under tmp_path (aiosqlite driver), then calls create_app(settings).
2. Tables are created directly from the models (ASGITransport doesn't run
   the lifespan, so create_tables wouldn't fire).
3. bcrypt runs at the minimum work factor to keep tests fast.

Tokens are minted with PyJWT directly via `make_token`; the service
itself only verifies tokens.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from keyguard.config import Settings
from keyguard.db.models import Base, UserRecord
from keyguard.db.store import UserStore
from keyguard.main import create_app

TEST_JWT_SECRET = "test-signing-secret-0123456789abcdefghijklmnop"
TEST_ENCRYPTION_KEY = "test-encryption-passphrase"
TEST_PASSWORD = "correct horse battery"
TEST_OPENAI_KEY = "sk-test-openai-0123456789abcdef"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'keyguard.db'}",
        jwt_secret=TEST_JWT_SECRET,
        encryption_key=TEST_ENCRYPTION_KEY,
        bcrypt_rounds=4,
        environment="test",
    )


@pytest_asyncio.fixture()
async def app(settings):
    app = create_app(settings)
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield app
    await app.state.engine.dispose()


@pytest.fixture()
def cipher(app):
    return app.state.cipher


@pytest.fixture()
def hasher(app):
    return app.state.hasher


@pytest_asyncio.fixture()
async def db_session(app):
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture()
def store(db_session, cipher, hasher) -> UserStore:
    return UserStore(db_session, cipher, hasher)


@pytest_asyncio.fixture()
async def user(store) -> UserRecord:
    """A saved user with a password and an OpenAI key."""
    record = UserRecord(
        name="Ada",
        email="ada@example.com",
        password=TEST_PASSWORD,
        api_keys={"openai": TEST_OPENAI_KEY},
    )
    return await store.save(record)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client running the real auth pipeline."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_token():
    """Build a signed JWT for an identity.

    make_token(user_id)                          → valid for 5 minutes
    make_token(user_id, expires_in=-60)          → already expired
    make_token(user_id, secret="other")          → signed with the wrong secret
    """

    def _make(
        identity,
        *,
        secret: str = TEST_JWT_SECRET,
        expires_in: int = 300,
        claim: str = "sub",
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            claim: str(identity),
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
        }
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture()
def auth_headers(make_token, user):
    return {"Authorization": f"Bearer {make_token(user.id)}"}
