"""Random values for sessions, verification links and request correlation."""

import secrets

TOKEN_BYTES = 32
"""Entropy of session and verification tokens (256 bits)."""


def generate_token() -> str:
    """Generate an unguessable token, hex-encoded."""
    return secrets.token_hex(TOKEN_BYTES)


def request_id() -> str:
    """Generate a short ID used to correlate a response with log lines."""
    return secrets.token_hex(6)
