"""
VaultSession — The authenticated context a front end holds while unlocked.

A session owns the live MasterKey. Vault operations take it as a
capability and never re-derive or re-verify it. Changing the master
password does not mutate a session: it returns a new one and closes the
old, wiping the old key.
"""
import os
import hmac
import logging
from typing import Optional

from .exceptions import (
    CommitIncompleteError,
    IntegrityError,
    InvalidPasswordError,
    PasswordMismatchError,
    ProfileExistsError,
    ProfileNotFoundError,
    SessionClosedError,
)
from .vault.config import VaultConfig
from .vault.crypto import (
    MasterKey,
    RandomSource,
    derive_master_key,
    generate_password,
)
from .vault.encrypted_vault import EncryptedVault, Vault
from .vault.key_rotation import rotate_master_password
from .vault.salt_store import SaltStore
from .vault.storage import recover_pending
from .vault.verification import VerificationToken

logger = logging.getLogger("passvault.vault")


def _passwords_match(password: str, confirm: str) -> bool:
    return hmac.compare_digest(password.encode("utf-8"), confirm.encode("utf-8"))


class VaultSession:
    """Unlocked vault bound to one master key.

    Use ``VaultSession.setup()`` on first run and ``VaultSession.unlock()``
    afterwards; both return a ready session. Call ``close()`` (or use the
    session as a context manager) to wipe the key.
    """

    def __init__(
        self,
        config: VaultConfig,
        key: MasterKey,
        rng: RandomSource = os.urandom,
    ):
        self._config = config
        self._key = key
        self._rng = rng
        self._store = EncryptedVault(config)
        try:
            self._vault: Vault = self._store.load()
        except BaseException:
            key.wipe()
            raise

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def is_configured(config: VaultConfig) -> bool:
        """Return True if a master password has been set up."""
        return SaltStore(config).salt_exists()

    @classmethod
    def setup(
        cls,
        password: str,
        confirm: str,
        config: Optional[VaultConfig] = None,
        rng: RandomSource = os.urandom,
    ) -> "VaultSession":
        """Configure a new master password and return an unlocked session.

        Raises:
            PasswordMismatchError: If the two entries differ.
            ProfileExistsError: If a profile is already configured.
            IntegrityError: If a vault file exists without a profile; a new
                salt would make it unreadable.
            SetupError: If the salt cannot be generated or stored.
        """
        config = config or VaultConfig.from_env()
        if not _passwords_match(password, confirm):
            raise PasswordMismatchError("Password entries do not match")
        recover_pending(
            config.data_dir,
            [config.salt_file, config.verify_file, config.vault_file],
        )

        salts = SaltStore(config)
        if salts.salt_exists():
            raise ProfileExistsError(
                f"A master password is already configured in {config.data_dir}"
            )
        if EncryptedVault(config).exists():
            raise IntegrityError(
                f"Vault file {config.vault_path} exists without a salt and "
                "verification token"
            )

        salt = salts.generate_and_store(rng)
        key = derive_master_key(password, salt, **config.kdf_params)
        try:
            VerificationToken(config).create(key, rng)
        except BaseException:
            key.wipe()
            salts.remove()
            raise
        logger.info("Master password configured in %s", config.data_dir)
        return cls(config, key, rng)

    @classmethod
    def unlock(
        cls,
        password: str,
        config: Optional[VaultConfig] = None,
        rng: RandomSource = os.urandom,
    ) -> "VaultSession":
        """Derive and verify the master key, returning an unlocked session.

        Raises:
            ProfileNotFoundError: If the salt or verification token is missing.
            TamperError: If the verification token was truncated.
            InvalidPasswordError: If the password is wrong.
        """
        config = config or VaultConfig.from_env()
        recover_pending(
            config.data_dir,
            [config.salt_file, config.verify_file, config.vault_file],
        )

        salt = SaltStore(config).load()
        if salt is None:
            raise ProfileNotFoundError(
                f"Salt file {config.salt_path} is missing"
            )
        key = derive_master_key(password, salt, **config.kdf_params)
        try:
            valid = VerificationToken(config).verify(key)
        except BaseException:
            key.wipe()
            raise
        if not valid:
            key.wipe()
            logger.warning("Unlock rejected: invalid master password")
            raise InvalidPasswordError("Invalid master password")
        logger.info("Vault unlocked")
        return cls(config, key, rng)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._key.wiped

    @property
    def key(self) -> MasterKey:
        return self._check_open()

    def _check_open(self) -> MasterKey:
        if self._key.wiped:
            raise SessionClosedError("Vault session is closed")
        return self._key

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, label: str, secret: Optional[str] = None) -> str:
        """Store a secret under ``label``.

        Args:
            label: Secret name. An existing entry is replaced.
            secret: Secret value; a random password is generated when None.

        Returns:
            The stored secret.
        """
        key = self.key
        if secret is None:
            secret = generate_password(self._config.password_length)
        self._store.add(self._vault, label, secret, key, self._rng)
        return secret

    def get(self, label: str) -> str | None:
        """Return the secret stored under ``label``, or None."""
        return self._store.get(label, self.key)

    def remove(self, label: str) -> None:
        """Remove an existing secret.

        Raises:
            LabelNotFoundError: If ``label`` is not stored.
        """
        self._check_open()
        self._store.remove(self._vault, label)

    def exists(self, label: str) -> bool:
        self._check_open()
        return label in self._vault

    def labels(self) -> list[str]:
        """List stored labels, sorted."""
        self._check_open()
        return sorted(self._vault)

    def reload(self) -> None:
        """Re-read the vault file into the session map."""
        self._check_open()
        self._vault = self._store.load()

    def change_password(self, new_password: str, confirm: str) -> "VaultSession":
        """Rotate the master password.

        On success this session is closed and a new session holding the new
        key is returned. If nothing was committed this session stays usable.
        Once the new files are committed this session is closed whatever
        happens next, since its key no longer matches the disk.

        Raises:
            PasswordMismatchError: If the two entries differ.
            RotationError: If a stored secret does not decrypt.
            CommitIncompleteError: If the commit could not be installed. This
                session is closed; unlock with the new password to finish.
        """
        try:
            new_key = rotate_master_password(
                self._config, self.key, new_password, confirm, self._rng,
            )
        except CommitIncompleteError:
            self.close()
            raise
        try:
            return type(self)(self._config, new_key, self._rng)
        finally:
            self.close()

    def close(self) -> None:
        """Wipe the master key. Safe to call more than once."""
        if not self._key.wiped:
            self._key.wipe()
            self._vault = {}
            logger.info("Vault session closed")

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<VaultSession [{state}] data_dir={self._config.data_dir}>"
