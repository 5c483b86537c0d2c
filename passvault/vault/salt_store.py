"""
Salt Store — One-time random salt binding key derivation to this vault.

The salt is public. It is generated once at profile setup and never
regenerated while a vault exists: a new salt makes every existing entry
unreadable.
"""
import os
import logging
from pathlib import Path

from ..exceptions import SetupError
from .config import VaultConfig
from .crypto import SALT_SIZE, RandomSource, random_bytes
from .storage import atomic_write

logger = logging.getLogger("passvault.vault")


class SaltStore:
    """Reads and creates ``salt.bin``."""

    def __init__(self, config: VaultConfig):
        self._path: Path = config.salt_path
        self._verify_path: Path = config.verify_path

    @property
    def path(self) -> Path:
        return self._path

    def salt_exists(self) -> bool:
        """Return True if a master password profile is configured.

        Both the salt and the verification token must be present; either one
        alone is an incomplete profile.
        """
        return self._path.is_file() and self._verify_path.is_file()

    def generate_and_store(self, rng: RandomSource = os.urandom) -> bytes:
        """Draw a fresh salt and persist it.

        Args:
            rng: Cryptographically secure random source.

        Returns:
            The 16-byte salt.

        Raises:
            SetupError: If the random source or filesystem fails. No salt
                file is left behind in that case.
        """
        salt = random_bytes(SALT_SIZE, rng)
        try:
            atomic_write(self._path, salt)
        except OSError as err:
            raise SetupError(f"Unable to write salt file {self._path}: {err}") from err
        logger.info("Generated new vault salt at %s", self._path)
        return salt

    def load(self) -> bytes | None:
        """Load the salt.

        Returns:
            The 16-byte salt, or None if the file is missing or has any
            other length.
        """
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return None
        if len(data) != SALT_SIZE:
            logger.warning(
                "Ignoring salt file %s with unexpected length %d",
                self._path, len(data),
            )
            return None
        return data

    def remove(self) -> None:
        """Delete the salt file, if present."""
        self._path.unlink(missing_ok=True)
