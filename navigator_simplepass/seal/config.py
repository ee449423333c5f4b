"""
Secret Registry: Ordered secrets used to seal and unseal session tokens.

Secrets are configured either as a single string (implicitly id 1) or as a
mapping of ordinal ids to secrets. The entry with the highest id is the
*current* secret and seals new tokens; every entry is tried on unseal, so a
new secret can be deployed while tokens sealed under an older one stay valid
until they expire.

Reads secrets from environment variables in the format:
    SIMPLEPASS_SECRET = <secret, at least 32 characters>
  or, for rotation:
    SIMPLEPASS_SECRET_v{N} = <secret, at least 32 characters>

Security Note:
    Never log secret material. Only log secret ids.
"""
import os
import re
import secrets
import logging
from collections.abc import Mapping
from typing import Union

from pydantic import BaseModel, Field, SecretStr, field_validator

from ..conf import MIN_SECRET_LENGTH, SECRET_ENV, SECRET_ENV_PREFIX
from ..exceptions import ConfigurationError

logger = logging.getLogger("navigator.simplepass.seal")

_SECRET_ENV_PATTERN = re.compile(rf"^{re.escape(SECRET_ENV_PREFIX)}(\d+)$")

SecretSource = Union[str, Mapping[int, str]]


def validate_source(source: SecretSource) -> None:
    """Check a secret source before any registry is built.

    Raises:
        ConfigurationError: If a string secret is too short, the map is
            empty, an id is not a positive integer, or any mapped secret
            is too short.
    """
    if isinstance(source, str):
        if len(source) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"simplepass: secret must be at least {MIN_SECRET_LENGTH} "
                "characters long."
            )
        return
    if not isinstance(source, Mapping):
        raise ConfigurationError(
            "simplepass: secret must be a string or a mapping of id to secret."
        )
    if not source:
        raise ConfigurationError(
            "simplepass: secret map must have at least one entry."
        )
    for key, value in source.items():
        if isinstance(key, bool) or not isinstance(key, int) or key < 1:
            raise ConfigurationError(
                f"simplepass: secret ids must be positive integers, got {key!r}."
            )
        if not isinstance(value, str) or len(value) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                "simplepass: all secrets in the secret map must be at least "
                f"{MIN_SECRET_LENGTH} characters long."
            )


class SecretEntry(BaseModel):
    """A single secret with its ordinal id."""

    id: int = Field(ge=1)
    value: SecretStr

    model_config = {"frozen": True}

    @field_validator("value")
    @classmethod
    def validate_length(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"secret must be at least {MIN_SECRET_LENGTH} characters long"
            )
        return v

    def secret(self) -> bytes:
        """Raw secret bytes, used as HKDF input key material."""
        return self.value.get_secret_value().encode("utf-8")


class SecretRegistry(BaseModel):
    """Immutable, ordered collection of secrets.

    ``entries`` is sorted by id and ``current_index`` points at the newest
    one, so nothing depends on mapping iteration order.
    """

    entries: tuple[SecretEntry, ...]

    model_config = {"frozen": True}

    @field_validator("entries")
    @classmethod
    def sort_entries(cls, v: tuple[SecretEntry, ...]) -> tuple[SecretEntry, ...]:
        if not v:
            raise ValueError("secret registry must have at least one entry")
        ids = [entry.id for entry in v]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate secret ids: {sorted(ids)}")
        return tuple(sorted(v, key=lambda entry: entry.id))

    @property
    def current_index(self) -> int:
        """Position of the entry with the maximum id."""
        return len(self.entries) - 1

    @property
    def current(self) -> SecretEntry:
        """The secret used to seal new tokens."""
        return self.entries[self.current_index]

    @property
    def ids(self) -> list[int]:
        return [entry.id for entry in self.entries]

    def all(self) -> tuple[SecretEntry, ...]:
        """Every secret, in registry order, for unsealing."""
        return self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"<SecretRegistry ids={self.ids} current={self.current.id}>"

    @classmethod
    def from_source(cls, source: SecretSource) -> "SecretRegistry":
        """Build a registry from a single secret or an id-to-secret map.

        Raises:
            ConfigurationError: If the source fails validate_source().
        """
        validate_source(source)
        if isinstance(source, str):
            source = {1: source}
        registry = cls(
            entries=tuple(
                SecretEntry(id=key, value=value) for key, value in source.items()
            )
        )
        logger.debug(
            "Loaded %d secret(s), current id %d", len(registry), registry.current.id
        )
        return registry

    @classmethod
    def from_env(cls) -> "SecretRegistry":
        """Create a SecretRegistry from SIMPLEPASS_SECRET[_v{N}] variables.

        Versioned variables take precedence over the single one.

        Raises:
            ConfigurationError: If no secret is set or a secret is too short.
        """
        return cls.from_source(load_secrets())


def load_secrets() -> SecretSource:
    """Read secrets from the environment.

    Returns:
        Mapping of secret id to secret when SIMPLEPASS_SECRET_v{N} variables
        are present, otherwise the value of SIMPLEPASS_SECRET.

    Raises:
        ConfigurationError: If no secret is found in the environment.
    """
    found: dict[int, str] = {}
    for name, value in os.environ.items():
        match = _SECRET_ENV_PATTERN.match(name)
        if match:
            found[int(match.group(1))] = value
    if found:
        logger.debug("Found secret version(s) %s in environment", sorted(found))
        return found
    single = os.environ.get(SECRET_ENV)
    if single is None:
        raise ConfigurationError(
            "No simplepass secret found in environment. "
            f"Set {SECRET_ENV}=<secret of at least {MIN_SECRET_LENGTH} characters>"
        )
    return single


def coerce_registry(value: Union[SecretSource, SecretRegistry]) -> SecretRegistry:
    """Accept an existing registry or anything from_source() accepts."""
    if isinstance(value, SecretRegistry):
        return value
    return SecretRegistry.from_source(value)


def generate_secret() -> str:
    """Generate a random URL-safe secret.

    This is a utility for operators to generate new secrets.

    Returns:
        43-character secret string (32 random bytes).
    """
    return secrets.token_urlsafe(32)
