"""CLI tests (click CliRunner).

Learn: check-config must report problems by variable name and never
echo secret values.
"""

import pytest
from click.testing import CliRunner

from keyguard.auth.cipher import SecretCipher
from keyguard.cli.main import main

LONG_SECRET = "cli-test-secret-0123456789abcdefghijklmnopq"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("KEYGUARD_JWT_SECRET", "KEYGUARD_ENCRYPTION_KEY", "KEYGUARD_ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def runner():
    return CliRunner()


def test_generate_keys(runner):
    result = runner.invoke(main, ["generate-keys"])
    assert result.exit_code == 0

    lines = dict(line.split("=", 1) for line in result.output.strip().splitlines())
    assert set(lines) == {"KEYGUARD_ENCRYPTION_KEY", "KEYGUARD_JWT_SECRET"}
    assert len(lines["KEYGUARD_JWT_SECRET"]) >= 32

    cipher = SecretCipher(lines["KEYGUARD_ENCRYPTION_KEY"])
    assert cipher.decrypt(cipher.encrypt("sk-check")) == "sk-check"


def test_generate_keys_are_fresh(runner):
    first = runner.invoke(main, ["generate-keys"]).output
    second = runner.invoke(main, ["generate-keys"]).output
    assert first != second


def test_check_config_ok(runner, monkeypatch):
    monkeypatch.setenv("KEYGUARD_JWT_SECRET", LONG_SECRET)
    monkeypatch.setenv("KEYGUARD_ENCRYPTION_KEY", "cli-encryption-passphrase")

    result = runner.invoke(main, ["check-config"])
    assert result.exit_code == 0
    assert "Configuration OK" in result.output
    assert LONG_SECRET not in result.output
    assert "cli-encryption-passphrase" not in result.output


def test_check_config_missing_secrets(runner):
    result = runner.invoke(main, ["check-config"])
    assert result.exit_code == 1
    assert "KEYGUARD_JWT_SECRET" in result.output
    assert "KEYGUARD_ENCRYPTION_KEY" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "keyguard" in result.output
