"""Error taxonomy for identity and secret handling.

Learn: Authorization failures all become Unauthorized and are turned into
one uniform 401 at the API boundary. The other errors are about secret
material and must propagate: a failed hash or encrypt aborts the save,
a failed decrypt surfaces to the caller instead of looking like "no key".
"""

UNAUTHORIZED_MESSAGE = "Not authorized to access this route"


class Unauthorized(Exception):
    """Raised when a request cannot be authorized.

    `reason` is for internal logging only and never reaches the client.
    """

    def __init__(self, reason: str = "unauthorized"):
        self.reason = reason
        super().__init__(UNAUTHORIZED_MESSAGE)


class EncryptionError(Exception):
    """Raised when a secret cannot be encrypted."""


class DecryptionError(Exception):
    """Raised when stored ciphertext cannot be read under the current key."""


class HashingError(Exception):
    """Raised when the password hash primitive fails."""


class UnknownProviderError(ValueError):
    """Raised for a provider name outside the supported set."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unknown credential provider: {provider!r}")
