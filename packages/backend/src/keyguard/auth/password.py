"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor is configurable (KEYGUARD_BCRYPT_ROUNDS, default 10);
each extra round doubles the cost of a hash.
"""

import bcrypt

from keyguard.auth.errors import HashingError

# bcrypt only looks at the first 72 bytes; newer releases reject longer input.
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted one-way hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Hash a password with a fresh random salt.

        Raises HashingError if bcrypt can't produce a hash (bad work
        factor, non-string input). Callers must not fall back to storing
        the plaintext.
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(_encode(plaintext), salt).decode("utf-8")
        except (AttributeError, TypeError, ValueError) as e:
            raise HashingError("Password hashing failed") from e

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Check a password against a stored hash.

        The comparison is bcrypt.checkpw, which is constant-time. A missing
        or malformed hash simply doesn't match.
        """
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(_encode(plaintext), password_hash.encode("utf-8"))
        except (AttributeError, TypeError, ValueError):
            return False
