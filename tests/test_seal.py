"""
Tests for the secret registry and the token sealer/unsealer.

Tests cover:
- Secret validation (length, empty maps, ids)
- Current secret selection and registry ordering
- Environment loading
- Seal/unseal lifecycle, tampering, wrong secrets, expiry
- Secret rotation
- Tagged unseal results and propagation of unexpected failures
"""
import time

import orjson
import pytest

from navigator_simplepass.exceptions import ConfigurationError
from navigator_simplepass.seal import (
    SecretRegistry,
    UnsealStatus,
    generate_secret,
    retire_secret,
    rotate_secret,
    seal,
    unseal,
    unseal_result,
    validate_source,
)
from navigator_simplepass.seal import crypto


SECRET = "a-very-long-secure-secret-for-testing-purposes"
OLD_SECRET = "a" * 32 + "-old"
NEW_SECRET = "b" * 32 + "-new"
TTL = 3600


def _seal_raw(data, secret=SECRET, issued_at=None):
    """Seal an arbitrary JSON document with the token layout."""
    issued_at = int(time.time()) if issued_at is None else issued_at
    salt = b"s" * crypto.SALT_SIZE
    nonce = b"n" * crypto.NONCE_SIZE
    header = f"sp1*{issued_at}"
    cipher = crypto.AESGCM(crypto.derive_key(secret.encode("utf-8"), salt))
    ct = cipher.encrypt(nonce, orjson.dumps(data), header.encode("ascii"))
    return "*".join(
        (header, crypto._b64encode(salt), crypto._b64encode(nonce), crypto._b64encode(ct))
    )


# --- Test Secret Validation ---

class TestSecretValidation:
    """Tests for validate_source() and SecretRegistry.from_source()."""

    def test_short_string_secret(self):
        """A string secret shorter than 32 characters is fatal."""
        with pytest.raises(ConfigurationError, match="at least 32 characters"):
            validate_source("tooshort")

    def test_exact_length_secret(self):
        """A string secret of exactly 32 characters is accepted."""
        validate_source("a" * 32)

    def test_empty_map(self):
        """An empty secret map is fatal."""
        with pytest.raises(ConfigurationError, match="at least one entry"):
            validate_source({})

    def test_short_secret_in_map(self):
        """Any short secret in the map is fatal."""
        with pytest.raises(ConfigurationError, match="at least 32 characters"):
            validate_source({1: "a" * 32, 2: "tooshort"})

    def test_valid_map(self):
        validate_source({1: "a" * 32, 2: "b" * 32})

    def test_invalid_ids(self):
        """Secret ids must be positive integers."""
        with pytest.raises(ConfigurationError):
            validate_source({0: "a" * 32})
        with pytest.raises(ConfigurationError):
            validate_source({"one": "a" * 32})

    def test_wrong_type(self):
        with pytest.raises(ConfigurationError):
            validate_source(12345)

    def test_from_source_rejects_weak_secret(self):
        with pytest.raises(ConfigurationError):
            SecretRegistry.from_source("short")


# --- Test Secret Registry ---

class TestSecretRegistry:
    """Tests for current/all selection."""

    def test_string_is_id_one(self):
        registry = SecretRegistry.from_source(SECRET)
        assert registry.ids == [1]
        assert registry.current.id == 1

    def test_current_is_max_id(self):
        """The highest id is current regardless of mapping order."""
        registry = SecretRegistry.from_source({7: NEW_SECRET, 3: OLD_SECRET})
        assert registry.current.id == 7
        assert registry.current.value.get_secret_value() == NEW_SECRET
        assert registry.ids == [3, 7]
        assert registry.current_index == 1

    def test_all_returns_every_entry(self):
        registry = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        assert [entry.id for entry in registry.all()] == [1, 2]
        assert len(registry) == 2

    def test_repr_hides_secrets(self):
        registry = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        assert OLD_SECRET not in repr(registry)
        assert NEW_SECRET not in repr(registry)
        assert NEW_SECRET not in repr(registry.current)

    def test_registry_is_frozen(self):
        registry = SecretRegistry.from_source(SECRET)
        with pytest.raises(Exception):
            registry.entries = ()

    def test_from_env_single(self, monkeypatch):
        monkeypatch.setenv("SIMPLEPASS_SECRET", SECRET)
        registry = SecretRegistry.from_env()
        assert registry.ids == [1]

    def test_from_env_versioned(self, monkeypatch):
        """Versioned variables win over the single one."""
        monkeypatch.setenv("SIMPLEPASS_SECRET", SECRET)
        monkeypatch.setenv("SIMPLEPASS_SECRET_v1", OLD_SECRET)
        monkeypatch.setenv("SIMPLEPASS_SECRET_v2", NEW_SECRET)
        registry = SecretRegistry.from_env()
        assert registry.ids == [1, 2]
        assert registry.current.value.get_secret_value() == NEW_SECRET

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("SIMPLEPASS_SECRET", raising=False)
        with pytest.raises(ConfigurationError, match="SIMPLEPASS_SECRET"):
            SecretRegistry.from_env()

    def test_generate_secret(self):
        first = generate_secret()
        assert len(first) >= 32
        assert first != generate_secret()
        validate_source(first)


# --- Test Seal Lifecycle ---

class TestSealLifecycle:
    """Tests for seal() and unseal()."""

    def test_round_trip(self, registry):
        """A freshly sealed token unseals to a valid payload."""
        before = int(time.time())
        token = seal(registry, TTL)
        payload = unseal(token, registry, TTL)
        assert payload is not None
        assert payload.version == 1
        assert payload.passed is True
        assert abs(payload.issued_at - before) <= 2

    def test_seal_is_not_deterministic(self, registry):
        now = time.time()
        assert seal(registry, TTL, now=now) != seal(registry, TTL, now=now)

    def test_token_does_not_reveal_payload(self, registry):
        token = seal(registry, TTL)
        assert "passed" not in token
        assert SECRET not in token

    def test_tampered_token(self, registry):
        """Changing trailing characters never yields a payload."""
        token = seal(registry, TTL)
        tampered = token[:-5] + ("XXXXX" if not token.endswith("XXXXX") else "YYYYY")
        assert unseal(tampered, registry, TTL) is None

    def test_tampered_timestamp(self, registry):
        """The header timestamp is authenticated."""
        token = seal(registry, TTL, now=1_700_000_000)
        tampered = token.replace("sp1*1700000000", "sp1*1700000100", 1)
        result = unseal_result(tampered, registry, TTL, now=1_700_000_100)
        assert result.status is UnsealStatus.INVALID

    def test_wrong_secret(self, registry):
        token = seal(registry, TTL)
        other = SecretRegistry.from_source("z" * 32 + "different-secret-here")
        assert unseal(token, other, TTL) is None

    def test_invalid_string(self, registry):
        result = unseal_result("not.a.valid.token", registry, TTL)
        assert result.status is UnsealStatus.MALFORMED
        assert result.payload is None

    @pytest.mark.parametrize("token", [
        "",
        "sp1*123*abc",
        "xx1*123*a*b*c",
        "sp1*notanumber*AAAA*AAAA*AAAA",
        "sp1*123*!!!!*AAAA*AAAA",
        "sp1*123*AAAA*AAAA*AAAA",
        "sp1*" + "9" * 5000 + "*" + "A" * 22 + "*" + "A" * 16 + "*" + "A" * 40,
        "sp1*" + "1" * 13 + "*" + "A" * 22 + "*" + "A" * 16 + "*" + "A" * 40,
    ])
    def test_malformed_tokens(self, registry, token):
        assert unseal_result(token, registry, TTL).status is UnsealStatus.MALFORMED

    def test_non_canonical_salt(self, registry):
        """Flipping an unused trailing bit of the salt is not accepted."""
        alphabet = (
            "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        )
        token = seal(registry, TTL)
        prefix, issued, salt, nonce, ct = token.split("*")
        last = alphabet[alphabet.index(salt[-1]) ^ 1]
        altered = "*".join((prefix, issued, salt[:-1] + last, nonce, ct))
        assert unseal(token, registry, TTL) is not None
        result = unseal_result(altered, registry, TTL)
        assert result.status is UnsealStatus.MALFORMED

    def test_non_string_token(self, registry):
        assert unseal_result(None, registry, TTL).status is UnsealStatus.MALFORMED

    def test_shape_validation(self, registry):
        """An authentic token with the wrong payload is not a session."""
        token = _seal_raw({"not": "a token"})
        result = unseal_result(token, registry, TTL)
        assert result.status is UnsealStatus.INVALID
        assert unseal(token, registry, TTL) is None

    def test_wrong_version(self, registry):
        now = int(time.time())
        token = _seal_raw({"version": 2, "passed": True, "issued_at": now}, issued_at=now)
        assert unseal(token, registry, TTL) is None

    def test_passed_must_be_true(self, registry):
        now = int(time.time())
        token = _seal_raw({"version": 1, "passed": 1, "issued_at": now}, issued_at=now)
        assert unseal(token, registry, TTL) is None

    def test_valid_raw_payload(self, registry):
        """The raw helper produces tokens unseal() accepts."""
        now = int(time.time())
        token = _seal_raw({"version": 1, "passed": True, "issued_at": now}, issued_at=now)
        assert unseal(token, registry, TTL) is not None

    def test_ttl_must_be_positive(self, registry):
        with pytest.raises(ValueError):
            seal(registry, 0)


# --- Test Expiry ---

class TestExpiry:
    """TTL is re-applied at verification time."""

    def test_expired_token(self, registry):
        token = seal(registry, TTL, now=1_000_000)
        result = unseal_result(token, registry, TTL, now=1_000_000 + TTL + 1)
        assert result.status is UnsealStatus.EXPIRED
        assert unseal(token, registry, TTL, now=1_000_000 + TTL + 1) is None

    def test_token_valid_until_ttl(self, registry):
        token = seal(registry, TTL, now=1_000_000)
        assert unseal(token, registry, TTL, now=1_000_000 + TTL) is not None

    def test_current_ttl_applies(self, registry):
        """Shrinking the configured TTL expires outstanding tokens."""
        token = seal(registry, TTL, now=1_000_000)
        assert unseal(token, registry, 60, now=1_000_000 + 120) is None

    def test_future_token(self, registry):
        token = seal(registry, TTL, now=1_000_000)
        result = unseal_result(token, registry, TTL, now=1_000_000 - 3600)
        assert result.status is UnsealStatus.INVALID


# --- Test Rotation ---

class TestRotation:
    """Sealing uses the newest secret; unsealing tries all."""

    def test_old_token_verifies_after_rotation(self):
        token = seal(SecretRegistry.from_source({1: OLD_SECRET}), TTL)
        rotated = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        result = unseal_result(token, rotated, TTL)
        assert result.ok
        assert result.secret_id == 1

    def test_new_tokens_use_newest_secret(self):
        rotated = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        token = seal(rotated, TTL)
        assert unseal(token, SecretRegistry.from_source(OLD_SECRET), TTL) is None
        assert unseal(token, rotated, TTL) is not None
        assert unseal_result(token, rotated, TTL).secret_id == 2

    def test_rotate_secret(self):
        registry = SecretRegistry.from_source(OLD_SECRET)
        old_token = seal(registry, TTL)
        rotated = rotate_secret(registry, NEW_SECRET)
        assert rotated.ids == [1, 2]
        assert rotated.current.id == 2
        assert registry.ids == [1]
        assert unseal(old_token, rotated, TTL) is not None

    def test_rotate_secret_keep(self):
        registry = SecretRegistry.from_source({1: SECRET, 2: OLD_SECRET})
        assert rotate_secret(registry, NEW_SECRET, keep=1).ids == [2, 3]
        assert rotate_secret(registry, NEW_SECRET, keep=0).ids == [3]

    def test_rotate_rejects_weak_secret(self):
        registry = SecretRegistry.from_source(OLD_SECRET)
        with pytest.raises(ConfigurationError):
            rotate_secret(registry, "weak")

    def test_retire_secret(self):
        registry = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        token = seal(SecretRegistry.from_source({1: OLD_SECRET}), TTL)
        retired = retire_secret(registry, 1)
        assert retired.ids == [2]
        assert unseal(token, retired, TTL) is None

    def test_retire_current_secret(self):
        registry = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        with pytest.raises(ConfigurationError):
            retire_secret(registry, 2)

    def test_retire_unknown_secret(self):
        registry = SecretRegistry.from_source({1: OLD_SECRET, 2: NEW_SECRET})
        with pytest.raises(KeyError):
            retire_secret(registry, 5)


# --- Test Unexpected Failures ---

class TestUnexpectedFailures:
    """Only recognized failures become statuses; the rest propagate."""

    def test_unexpected_error_propagates(self, registry, monkeypatch):
        token = seal(registry, TTL)

        class BrokenCipher:
            def __init__(self, key):
                pass

            def decrypt(self, nonce, data, associated_data):
                raise RuntimeError("backend failure")

        monkeypatch.setattr(crypto, "AESGCM", BrokenCipher)
        with pytest.raises(RuntimeError, match="backend failure"):
            unseal(token, registry, TTL)
