"""Current-user API — profile, provider API keys, password change.

Learn: Every route here sits behind get_current_user. The user on the
auth context was loaded without its password hash, so these handlers
can't leak it by accident; the password route loads it explicitly.

- GET  /me          → profile (no hash, no key material)
- GET  /me/api-keys → per provider: configured? readable? masked hint
- PUT  /me/api-keys → set/clear keys and the preferred provider
- POST /me/password → change password (requires the current one)

API keys are never returned in full. A stored key that no longer
decrypts is reported as unavailable rather than as "not configured".
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from keyguard.auth.cipher import SecretCipher
from keyguard.auth.dependencies import get_cipher, get_current_user, get_user_store
from keyguard.auth.errors import DecryptionError, UnknownProviderError
from keyguard.auth.gate import AuthenticatedContext
from keyguard.db.models import UserRecord
from keyguard.db.store import UserStore
from keyguard.providers import PROVIDERS

logger = structlog.get_logger()

router = APIRouter(prefix="/me")


# ─── Schemas ─────────────────────────────────────────────


class ProfileRead(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    preferred_provider: str
    configured_providers: list[str]
    created_at: datetime


class ApiKeyStatus(BaseModel):
    provider: str
    configured: bool
    available: bool
    hint: Optional[str] = None  # e.g. "••••3f9a"


class ApiKeysRead(BaseModel):
    preferred_provider: str
    keys: list[ApiKeyStatus]


class ApiKeysUpdate(BaseModel):
    """Only provided providers change. An empty string clears a key."""
    api_keys: dict[str, str] = Field(default_factory=dict)
    preferred_provider: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


# ─── Helpers ─────────────────────────────────────────────


def mask_secret(secret: str) -> str:
    """Show only the last 4 characters, and nothing of short secrets."""
    if len(secret) <= 8:
        return "••••"
    return f"••••{secret[-4:]}"


def _key_statuses(user: UserRecord, cipher: SecretCipher) -> ApiKeysRead:
    statuses = []
    for provider in PROVIDERS:
        try:
            plaintext = user.get_decrypted_credential(provider, cipher)
        except DecryptionError:
            logger.warning("keyguard.credential.unreadable", provider=provider)
            statuses.append(
                ApiKeyStatus(provider=provider, configured=True, available=False)
            )
            continue
        statuses.append(
            ApiKeyStatus(
                provider=provider,
                configured=bool(plaintext),
                available=bool(plaintext),
                hint=mask_secret(plaintext) if plaintext else None,
            )
        )
    return ApiKeysRead(preferred_provider=user.preferred_provider, keys=statuses)


# ─── Profile ─────────────────────────────────────────────


@router.get("", response_model=ProfileRead)
async def get_me(context: AuthenticatedContext = Depends(get_current_user)):
    """Get the current authenticated user's profile."""
    user = context.user
    return ProfileRead(
        id=user.id,
        name=user.name,
        email=user.email,
        preferred_provider=user.preferred_provider,
        configured_providers=user.configured_providers(),
        created_at=user.created_at,
    )


# ─── API keys ────────────────────────────────────────────


@router.get("/api-keys", response_model=ApiKeysRead)
async def get_api_keys(
    context: AuthenticatedContext = Depends(get_current_user),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Which provider keys are stored, with masked hints."""
    return _key_statuses(context.user, cipher)


@router.put("/api-keys", response_model=ApiKeysRead)
async def update_api_keys(
    body: ApiKeysUpdate,
    context: AuthenticatedContext = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
    cipher: SecretCipher = Depends(get_cipher),
):
    """Set or clear provider keys. Keys are encrypted before they're saved."""
    user = context.user
    try:
        for provider, value in body.api_keys.items():
            user.set_credential(provider, value)
        if body.preferred_provider is not None:
            user.preferred_provider = body.preferred_provider
    except UnknownProviderError as e:
        raise HTTPException(status_code=422, detail=str(e))

    await store.save(user)
    logger.info(
        "keyguard.api_keys.updated",
        providers=sorted(body.api_keys),
        preferred_provider=user.preferred_provider,
    )
    return _key_statuses(user, cipher)


# ─── Password ────────────────────────────────────────────


@router.post("/password", status_code=204)
async def change_password(
    body: PasswordChange,
    context: AuthenticatedContext = Depends(get_current_user),
    store: UserStore = Depends(get_user_store),
):
    """Change the password. The current password must match."""
    user = await store.load_password_hash(context.user)
    if not await user.match_password(body.current_password, store.hasher):
        raise HTTPException(status_code=403, detail="Current password is incorrect")

    user.password = body.new_password
    await store.save(user)
    logger.info("keyguard.password.changed")
