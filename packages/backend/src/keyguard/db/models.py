"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Generic Uuid/JSON column types keep the schema portable between
PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in tests.

UserRecord owns its own protection logic. Plaintext never sits in a
mapped column: setting a password or API key only records it in the
record's pending-changes map, and protect() turns pending plaintext
into hash/ciphertext right before the write. A column therefore always
holds either last-saved protected material or nothing, which is how a
save can tell "fresh plaintext" from "ciphertext from a prior save"
without leaning on the ORM's own change history.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    reconstructor,
    validates,
)

from keyguard.auth.cipher import SecretCipher
from keyguard.auth.password import PasswordHasher
from keyguard.providers import (
    DEFAULT_PROVIDER,
    PROVIDERS,
    check_provider,
    empty_api_keys,
)

logger = structlog.get_logger()

PASSWORD_FIELD = "password"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class UserRecord(Base):
    """A user with a hashed password and encrypted provider API keys.

    Learn: `password` is write-only and `set_credential()` never touches
    `api_keys` directly; both go through the pending map until protect()
    runs. Reads of secrets are explicit: match_password() for the hash,
    get_decrypted_credential() for a key, decrypted transiently and
    never written back.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    api_keys: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=empty_api_keys
    )  # provider -> Fernet ciphertext or ""
    preferred_provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_PROVIDER
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __init__(
        self,
        *,
        name: str,
        email: str,
        password: str,
        api_keys: Optional[dict[str, str]] = None,
        preferred_provider: str = DEFAULT_PROVIDER,
    ):
        super().__init__(
            name=name,
            email=email,
            api_keys=empty_api_keys(),
            preferred_provider=preferred_provider,
            created_at=utcnow(),
        )
        self._pending: dict[str, str] = {}
        self.password = password
        for provider, value in (api_keys or {}).items():
            self.set_credential(provider, value)

    @reconstructor
    def _init_on_load(self) -> None:
        self._pending = {}

    # ─── Field rules ──────────────────────────────────────

    @validates("id", "created_at")
    def _validate_immutable(self, key: str, value):
        if getattr(self, key) is not None:
            raise AttributeError(f"{key} is immutable once set")
        return value

    @validates("preferred_provider")
    def _validate_preferred_provider(self, key: str, value: str) -> str:
        return check_provider(value)

    # ─── Pending changes ──────────────────────────────────

    @property
    def password(self) -> str:
        raise AttributeError("password is write-only; use match_password()")

    @password.setter
    def password(self, plaintext: str) -> None:
        if not plaintext:
            raise ValueError("Password must not be empty")
        self._pending[PASSWORD_FIELD] = plaintext

    def set_credential(self, provider: str, plaintext: str) -> None:
        """Stage a new API key for a provider ('' clears it on save)."""
        check_provider(provider)
        self._pending[provider] = plaintext or ""

    @property
    def pending_changes(self) -> frozenset[str]:
        """Fields holding fresh plaintext that the next save will protect."""
        return frozenset(self._pending)

    @property
    def credentials(self) -> dict[str, str]:
        """Stored (protected) API keys for every provider."""
        return {**empty_api_keys(), **(self.api_keys or {})}

    def configured_providers(self) -> list[str]:
        stored = self.credentials
        return [provider for provider in PROVIDERS if stored[provider]]

    # ─── Pre-save hook ────────────────────────────────────

    async def protect(
        self, cipher: SecretCipher, hasher: PasswordHasher
    ) -> frozenset[str]:
        """Hash/encrypt every pending field. Runs right before a write.

        All new values are computed first and only then assigned, so a
        failing encrypt or hash leaves the record (and the store) exactly
        as it was. Returns the names of the fields that were protected.
        """
        if not self._pending:
            return frozenset()

        api_keys = self.credentials
        for provider in PROVIDERS:
            if provider in self._pending:
                api_keys[provider] = cipher.encrypt(self._pending[provider])

        password_hash = None
        if PASSWORD_FIELD in self._pending:
            # bcrypt is CPU-bound — keep it off the event loop
            password_hash = await asyncio.to_thread(
                hasher.hash, self._pending[PASSWORD_FIELD]
            )

        self.api_keys = api_keys
        if password_hash is not None:
            self.password_hash = password_hash

        protected = frozenset(self._pending)
        self._pending.clear()
        logger.info("keyguard.user.protected", fields=sorted(protected))
        return protected

    # ─── Secret access ────────────────────────────────────

    async def match_password(self, candidate: str, hasher: PasswordHasher) -> bool:
        """Check a candidate password against the stored hash."""
        return await asyncio.to_thread(hasher.verify, candidate, self.password_hash)

    def get_decrypted_credential(self, provider: str, cipher: SecretCipher) -> str:
        """Return the plaintext API key for a provider, or '' if none is stored.

        Raises UnknownProviderError for names outside PROVIDERS and
        DecryptionError if the stored value can't be read under the current key.
        """
        check_provider(provider)
        stored = self.credentials[provider]
        if not stored:
            return ""
        return cipher.decrypt(stored)
