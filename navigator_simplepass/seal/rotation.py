"""
Secret Rotation: Derive new registries when rotating sealing secrets.

Rotation never re-seals anything: tokens are client-held, so an old secret is
kept in the registry until every token it sealed has expired, then retired.
Registries are immutable; every helper returns a new one.

Security Note:
    Never log secret values. Only log secret ids.
"""
import logging
from typing import Optional

from ..exceptions import ConfigurationError
from .config import SecretEntry, SecretRegistry, validate_source

logger = logging.getLogger("navigator.simplepass.seal")


def rotate_secret(
    registry: SecretRegistry,
    new_secret: str,
    keep: Optional[int] = None,
) -> SecretRegistry:
    """Add ``new_secret`` as the current secret.

    Args:
        registry: Registry to rotate from.
        new_secret: Secret that will seal new tokens (id = current id + 1).
        keep: Number of previous secrets to keep for unsealing; all of them
            when None.

    Returns:
        New SecretRegistry.

    Raises:
        ConfigurationError: If the new secret is too short or keep is negative.
    """
    validate_source(new_secret)
    if keep is not None and keep < 0:
        raise ConfigurationError(f"keep must be zero or positive, got {keep}")
    previous = registry.all()
    if keep is not None:
        previous = previous[len(previous) - keep:] if keep else ()
    new_id = registry.current.id + 1
    rotated = SecretRegistry(
        entries=(*previous, SecretEntry(id=new_id, value=new_secret))
    )
    logger.info(
        "Rotated secrets: current id %d -> %d (keeping %s)",
        registry.current.id, new_id, [entry.id for entry in previous],
    )
    return rotated


def retire_secret(registry: SecretRegistry, secret_id: int) -> SecretRegistry:
    """Remove an old secret once the tokens it sealed have expired.

    Raises:
        KeyError: If secret_id is not in the registry.
        ConfigurationError: If secret_id is the current secret.
    """
    if secret_id not in registry.ids:
        raise KeyError(f"Secret id {secret_id} not found in registry")
    if secret_id == registry.current.id:
        raise ConfigurationError(
            f"Cannot retire secret id {secret_id}: it is the current secret"
        )
    retired = SecretRegistry(
        entries=tuple(entry for entry in registry.all() if entry.id != secret_id)
    )
    logger.info("Retired secret id %d", secret_id)
    return retired
