"""Supported third-party credential providers.

Adding a provider means extending PROVIDERS here; record protection,
decryption and the API all read from this tuple.
"""

from keyguard.auth.errors import UnknownProviderError

PROVIDERS: tuple[str, ...] = ("openai", "claude", "gemini", "grok")

DEFAULT_PROVIDER = "openai"


def check_provider(provider: str) -> str:
    """Return the provider name, or raise UnknownProviderError."""
    if provider not in PROVIDERS:
        raise UnknownProviderError(provider)
    return provider


def empty_api_keys() -> dict[str, str]:
    return {provider: "" for provider in PROVIDERS}
