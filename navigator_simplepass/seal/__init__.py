"""Seal: Stateless, tamper-evident session tokens with secret rotation.

Security Note (Threat Model):
    A sealed token is the whole session: anyone holding a valid token is
    authenticated until it expires. There is no revocation list; rotating the
    secrets and retiring the old ones is the only way to invalidate tokens
    early.
"""

from .config import (
    SecretEntry,
    SecretRegistry,
    validate_source,
    load_secrets,
    generate_secret,
)
from .crypto import (
    SessionPayload,
    UnsealStatus,
    UnsealResult,
    seal,
    unseal,
    unseal_result,
)
from .rotation import rotate_secret, retire_secret

__all__ = [
    "SecretEntry",
    "SecretRegistry",
    "validate_source",
    "load_secrets",
    "generate_secret",
    "SessionPayload",
    "UnsealStatus",
    "UnsealResult",
    "seal",
    "unseal",
    "unseal_result",
    "rotate_secret",
    "retire_secret",
]
