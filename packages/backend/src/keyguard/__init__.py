"""Keyguard — identity and credential protection for per-user LLM API keys.

Verifies bearer tokens on inbound requests and keeps user secrets
(passwords and third-party provider API keys) protected at rest.
"""

__version__ = "0.1.0"
