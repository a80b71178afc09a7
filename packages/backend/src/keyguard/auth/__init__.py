"""Authentication and credential protection.

Learn: Two halves live here:
1. Session verification → bearer JWT checked by TokenVerifier, resolved
   to a user by AuthGate, mounted as a FastAPI dependency.
2. Secrets at rest → passwords hashed with bcrypt (PasswordHasher),
   provider API keys encrypted with Fernet (SecretCipher).

Both are built once at startup from Settings and shared read-only.
"""
