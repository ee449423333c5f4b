"""
Seal Crypto Core: Key derivation, token sealing and unsealing.

A sealed token carries a ``SessionPayload`` encrypted under the current secret:
- Key: HKDF-SHA256(secret, salt=random 16B, info="simplepass-seal-v1")
- Cipher: AES-256-GCM, random 96-bit nonce, header bound as associated data
- Layout: ``sp1*<issued_at>*<salt>*<nonce>*<ciphertext+tag>`` (base64url)

Tokens carry no secret id; unsealing tries every secret in the registry and
re-applies the caller's TTL against ``issued_at``, so a TTL change affects
outstanding tokens immediately.

Security Note:
    Never log tokens, payloads or secrets. Only log statuses and secret ids.
"""
import os
import time
import base64
import binascii
import logging
from enum import Enum
from typing import Literal, Optional
from dataclasses import dataclass

import orjson
from pydantic import BaseModel, ValidationError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..conf import TIMESTAMP_SKEW, TOKEN_PREFIX, TOKEN_VERSION
from .config import SecretEntry, SecretRegistry

logger = logging.getLogger("navigator.simplepass.seal")

SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
SEPARATOR = "*"
MAX_TIMESTAMP_DIGITS = 12

_CONTEXT = f"simplepass-seal-v{TOKEN_VERSION}"


class SessionPayload(BaseModel):
    """The authenticated content of a session token."""

    version: Literal[1]
    passed: Literal[True]
    issued_at: int

    model_config = {"frozen": True, "strict": True}


class UnsealStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class UnsealResult:
    """Outcome of unsealing a token; ``payload`` is set only when VALID."""

    status: UnsealStatus
    payload: Optional[SessionPayload] = None
    secret_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is UnsealStatus.VALID


class _Malformed(Exception):
    """Internal marker for structurally broken tokens."""


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: bytes, salt: bytes, context: str = _CONTEXT) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        secret: Input key material (the configured secret).
        salt: Per-token random salt.
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(secret)


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------

def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    """Decode unpadded base64url, accepting only the canonical encoding."""
    padded = data + "=" * (-len(data) % 4)
    try:
        decoded = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as err:
        raise _Malformed(str(err)) from err
    # unused trailing bits must be zero
    if _b64encode(decoded) != data:
        raise _Malformed("non-canonical base64")
    return decoded


def _header(issued_at: int) -> str:
    return f"{TOKEN_PREFIX}{SEPARATOR}{issued_at}"


def _split(token: str) -> tuple[int, bytes, bytes, bytes]:
    """Split a token into (issued_at, salt, nonce, ciphertext)."""
    if not isinstance(token, str):
        raise _Malformed("token is not a string")
    parts = token.split(SEPARATOR)
    if len(parts) != 5:
        raise _Malformed(f"expected 5 components, got {len(parts)}")
    prefix, issued, salt, nonce, ciphertext = parts
    if prefix != TOKEN_PREFIX:
        raise _Malformed("wrong token prefix")
    if not issued.isdigit() or not issued.isascii():
        raise _Malformed("invalid timestamp")
    if len(issued) > MAX_TIMESTAMP_DIGITS:
        raise _Malformed("timestamp too long")
    salt_bytes = _b64decode(salt)
    nonce_bytes = _b64decode(nonce)
    ct_bytes = _b64decode(ciphertext)
    if len(salt_bytes) != SALT_SIZE or len(nonce_bytes) != NONCE_SIZE:
        raise _Malformed("invalid salt or nonce size")
    if len(ct_bytes) <= TAG_SIZE:
        raise _Malformed("ciphertext too short")
    return int(issued), salt_bytes, nonce_bytes, ct_bytes


def _now(now: Optional[float]) -> int:
    return int(time.time() if now is None else now)


# ---------------------------------------------------------------------------
# Seal / Unseal
# ---------------------------------------------------------------------------

def seal(registry: SecretRegistry, ttl: int, now: Optional[float] = None) -> str:
    """Seal a fresh session payload under the registry's current secret.

    Every call draws a new salt and nonce, so two tokens sealed at the same
    second differ.

    Args:
        registry: Secrets; the entry with the highest id is used.
        ttl: Validity window in seconds, must be positive.
        now: Unix time of sealing; defaults to the current time.

    Returns:
        The sealed token string.
    """
    if ttl <= 0:
        raise ValueError(f"ttl must be positive, got {ttl}")
    issued_at = _now(now)
    payload = SessionPayload(
        version=TOKEN_VERSION, passed=True, issued_at=issued_at,
    )
    entry: SecretEntry = registry.current
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    header = _header(issued_at)
    cipher = AESGCM(derive_key(entry.secret(), salt))
    ct = cipher.encrypt(
        nonce, orjson.dumps(payload.model_dump()), header.encode("ascii"),
    )
    return SEPARATOR.join(
        (header, _b64encode(salt), _b64encode(nonce), _b64encode(ct))
    )


def _decrypt(
    registry: SecretRegistry,
    header: bytes,
    salt: bytes,
    nonce: bytes,
    ciphertext: bytes,
) -> tuple[Optional[SecretEntry], Optional[bytes]]:
    """Try every secret in registry order; first one that authenticates wins."""
    for entry in registry.all():
        cipher = AESGCM(derive_key(entry.secret(), salt))
        try:
            return entry, cipher.decrypt(nonce, ciphertext, header)
        except InvalidTag:
            continue
    return None, None


def unseal_result(
    token: str,
    registry: SecretRegistry,
    ttl: int,
    now: Optional[float] = None,
) -> UnsealResult:
    """Unseal a token and report why it is or is not a valid session.

    Expected failures (malformed, tampered, wrong secret, expired, invalid
    payload) are returned as a status. Anything else raised by the crypto
    layer propagates to the caller.

    Args:
        token: Sealed token as read from the cookie.
        registry: Secrets to try, in registry order.
        ttl: Maximum token age in seconds, taken from the current config.
        now: Unix time of verification; defaults to the current time.
    """
    try:
        issued_at, salt, nonce, ciphertext = _split(token)
    except _Malformed as err:
        logger.debug("Malformed session token: %s", err)
        return UnsealResult(UnsealStatus.MALFORMED)

    entry, plaintext = _decrypt(
        registry, _header(issued_at).encode("ascii"), salt, nonce, ciphertext,
    )
    if entry is None:
        logger.debug("Session token failed integrity check")
        return UnsealResult(UnsealStatus.INVALID)

    try:
        payload = SessionPayload.model_validate(orjson.loads(plaintext))
    except (orjson.JSONDecodeError, ValidationError):
        logger.debug("Session token payload rejected (secret id=%d)", entry.id)
        return UnsealResult(UnsealStatus.INVALID, secret_id=entry.id)
    if payload.issued_at != issued_at:
        return UnsealResult(UnsealStatus.INVALID, secret_id=entry.id)

    current = _now(now)
    if issued_at > current + TIMESTAMP_SKEW:
        logger.debug("Session token issued in the future")
        return UnsealResult(UnsealStatus.INVALID, secret_id=entry.id)
    if current - issued_at > ttl:
        logger.debug("Session token expired (secret id=%d)", entry.id)
        return UnsealResult(UnsealStatus.EXPIRED, secret_id=entry.id)

    return UnsealResult(UnsealStatus.VALID, payload=payload, secret_id=entry.id)


def unseal(
    token: str,
    registry: SecretRegistry,
    ttl: int,
    now: Optional[float] = None,
) -> Optional[SessionPayload]:
    """Return the session payload of a valid token, or None."""
    result = unseal_result(token, registry, ttl, now=now)
    return result.payload if result.ok else None
