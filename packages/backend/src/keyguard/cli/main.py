"""Keyguard CLI — operator commands for the secrets this service needs.

Usage:
    keyguard generate-keys        # Fresh KEYGUARD_ENCRYPTION_KEY + KEYGUARD_JWT_SECRET
    keyguard check-config         # Validate env config without printing secrets
    keyguard serve                # Run the API with uvicorn
"""

from __future__ import annotations

import secrets
import sys

import click
from pydantic import ValidationError

from keyguard import __version__
from keyguard.auth.cipher import SecretCipher
from keyguard.auth.errors import DecryptionError
from keyguard.auth.jwt import TokenVerifier
from keyguard.config import Settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:
    """Load settings from env, reporting problems by field name only."""
    try:
        return Settings()
    except ValidationError as e:
        click.secho("Configuration error:", fg="red", err=True)
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            env_name = f"KEYGUARD_{field.upper()}" if error["loc"] else field
            click.secho(f"  {env_name}: {error['msg']}", fg="red", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="keyguard")
def main():
    """Keyguard — token verification and API-key protection service."""


@main.command("generate-keys")
def generate_keys():
    """Print a fresh encryption key and JWT signing secret as env lines."""
    click.echo(f"KEYGUARD_ENCRYPTION_KEY={SecretCipher.generate_key()}")
    click.echo(f"KEYGUARD_JWT_SECRET={secrets.token_urlsafe(48)}")


@main.command("check-config")
def check_config():
    """Load config from env and check the secrets are usable."""
    settings = _load_settings()

    cipher = SecretCipher(settings.encryption_key.get_secret_value())
    probe = secrets.token_hex(8)
    try:
        if cipher.decrypt(cipher.encrypt(probe)) != probe:
            raise DecryptionError("round trip mismatch")
    except DecryptionError:
        click.secho("Encryption key failed a round-trip check", fg="red", err=True)
        sys.exit(1)

    TokenVerifier(
        settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )

    click.secho("Configuration OK", fg="green")
    click.echo(f"  environment:   {settings.environment}")
    click.echo(f"  database:      {settings.database_url.split('://', 1)[0]}")
    click.echo(f"  jwt algorithm: {settings.jwt_algorithm}")
    click.echo(f"  bcrypt rounds: {settings.bcrypt_rounds}")


@main.command()
@click.option("--host", default=None, help="Bind host (default: KEYGUARD_HOST)")
@click.option("--port", default=None, type=int, help="Bind port (default: KEYGUARD_PORT)")
def serve(host: str | None, port: int | None):
    """Run the API server."""
    import uvicorn

    settings = _load_settings()
    uvicorn.run(
        "keyguard.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
    )


if __name__ == "__main__":
    main()
