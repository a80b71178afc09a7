"""Current-user API tests.

Learn: Tests cover:
1. GET /me profile
2. GET /me/api-keys — masked hints, never full keys
3. PUT /me/api-keys — keys encrypted at rest, clearing, preferred provider,
   unknown providers rejected
4. Stored key unreadable under the current key → reported as unavailable
5. POST /me/password — current password required, hash replaced
"""

import pytest

from keyguard.auth.cipher import SecretCipher
from keyguard.providers import PROVIDERS

from conftest import TEST_OPENAI_KEY, TEST_PASSWORD


def _by_provider(body: dict) -> dict:
    return {k["provider"]: k for k in body["keys"]}


# ═══════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_profile(client, user, auth_headers):
    r = await client.get("/api/v1/me", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Ada"
    assert body["preferred_provider"] == "openai"
    assert body["configured_providers"] == ["openai"]


# ═══════════════════════════════════════════════════════════
# API keys
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_api_keys_masked(client, user, auth_headers):
    r = await client.get("/api/v1/me/api-keys", headers=auth_headers)
    assert r.status_code == 200
    keys = _by_provider(r.json())

    assert set(keys) == set(PROVIDERS)
    assert keys["openai"]["configured"] is True
    assert keys["openai"]["available"] is True
    assert keys["openai"]["hint"] == f"••••{TEST_OPENAI_KEY[-4:]}"
    assert keys["gemini"] == {
        "provider": "gemini",
        "configured": False,
        "available": False,
        "hint": None,
    }
    assert TEST_OPENAI_KEY not in r.text


@pytest.mark.asyncio
async def test_update_api_keys_encrypts_at_rest(
    client, user, auth_headers, db_session, cipher
):
    r = await client.put(
        "/api/v1/me/api-keys",
        headers=auth_headers,
        json={
            "api_keys": {"claude": "sk-ant-api03-abcdef", "openai": ""},
            "preferred_provider": "claude",
        },
    )
    assert r.status_code == 200
    body = r.json()
    assert body["preferred_provider"] == "claude"
    keys = _by_provider(body)
    assert keys["claude"]["configured"] is True
    assert keys["openai"]["configured"] is False
    assert "sk-ant-api03-abcdef" not in r.text

    await db_session.refresh(user)
    stored = user.credentials["claude"]
    assert stored != "sk-ant-api03-abcdef"
    assert cipher.decrypt(stored) == "sk-ant-api03-abcdef"
    assert user.credentials["openai"] == ""
    assert user.preferred_provider == "claude"


@pytest.mark.asyncio
async def test_update_keeps_password_hash(client, user, auth_headers, db_session):
    hash_before = user.password_hash
    r = await client.put(
        "/api/v1/me/api-keys",
        headers=auth_headers,
        json={"api_keys": {"grok": "xai-123456789"}},
    )
    assert r.status_code == 200

    await db_session.refresh(user)
    assert user.password_hash == hash_before


@pytest.mark.asyncio
async def test_update_unknown_provider(client, user, auth_headers):
    r = await client.put(
        "/api/v1/me/api-keys",
        headers=auth_headers,
        json={"api_keys": {"mistral": "key"}},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_update_unknown_preferred_provider(client, user, auth_headers):
    r = await client.put(
        "/api/v1/me/api-keys",
        headers=auth_headers,
        json={"preferred_provider": "mistral"},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_unreadable_key_reported_unavailable(
    client, user, auth_headers, db_session
):
    """A key encrypted under another key is flagged, not hidden as empty."""
    user.api_keys = {
        **user.credentials,
        "gemini": SecretCipher("a-previous-key").encrypt("gm-old"),
    }
    await db_session.commit()

    r = await client.get("/api/v1/me/api-keys", headers=auth_headers)
    assert r.status_code == 200
    gemini = _by_provider(r.json())["gemini"]
    assert gemini["configured"] is True
    assert gemini["available"] is False
    assert gemini["hint"] is None


# ═══════════════════════════════════════════════════════════
# Password
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_change_password(client, user, auth_headers, db_session, hasher):
    hash_before = user.password_hash
    r = await client.post(
        "/api/v1/me/password",
        headers=auth_headers,
        json={"current_password": TEST_PASSWORD, "new_password": "new-password-42"},
    )
    assert r.status_code == 204

    await db_session.refresh(user)
    assert user.password_hash != hash_before
    assert await user.match_password("new-password-42", hasher)


@pytest.mark.asyncio
async def test_change_password_wrong_current(client, user, auth_headers, db_session):
    hash_before = user.password_hash
    r = await client.post(
        "/api/v1/me/password",
        headers=auth_headers,
        json={"current_password": "not-it", "new_password": "new-password-42"},
    )
    assert r.status_code == 403

    await db_session.refresh(user)
    assert user.password_hash == hash_before


@pytest.mark.asyncio
async def test_change_password_too_short(client, user, auth_headers):
    r = await client.post(
        "/api/v1/me/password",
        headers=auth_headers,
        json={"current_password": TEST_PASSWORD, "new_password": "short"},
    )
    assert r.status_code == 422
