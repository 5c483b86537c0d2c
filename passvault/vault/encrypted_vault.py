"""
EncryptedVault — Persistent label → secret map with per-entry AEAD.

Provides the storage API used by a vault session:
- ``load()`` / ``save(vault)`` — read or fully rewrite vault.json
- ``add(vault, label, plaintext, key)`` — encrypt and persist a secret
- ``get(label, key)`` — re-read disk, decrypt and return a secret
- ``remove(vault, label)`` — delete an existing secret
- ``reencrypt(vault, old_key, new_key)`` — re-key every entry

vault.json holds ``{label: {"nonce": [..], "cipher": [..]}}`` where both
fields are arrays of byte values. Every mutation rewrites the whole file.

Security Note:
    Never log plaintext or ciphertext values. Only log labels and counts.
    Keys passed in are capabilities: they are not re-verified here.
"""
import os
import logging
from pathlib import Path
from typing import Any, Union

import orjson
from cryptography.exceptions import InvalidTag
from pydantic import (
    BaseModel,
    TypeAdapter,
    ValidationError,
    field_serializer,
    field_validator,
)

from ..exceptions import (
    EntryEncodingError,
    LabelNotFoundError,
    RotationError,
    VaultCorruptedError,
)
from .config import VaultConfig
from .crypto import (
    NONCE_SIZE,
    MasterKey,
    RandomSource,
    encrypt_secret,
    decrypt_secret,
)
from .storage import atomic_write

logger = logging.getLogger("passvault.vault")


class EncryptedEntry(BaseModel):
    """A single encrypted secret: random nonce and AES-GCM ciphertext."""

    nonce: bytes
    cipher: bytes

    model_config = {"frozen": True}

    @field_validator("nonce", "cipher", mode="before")
    @classmethod
    def coerce_byte_array(cls, v: Any) -> bytes:
        """Accept raw bytes or the persisted array-of-ints form."""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, list):
            try:
                return bytes(v)
            except (TypeError, ValueError) as err:
                raise ValueError(f"Invalid byte array: {err}") from err
        raise ValueError(f"Expected a byte array, got {type(v).__name__}")

    @field_validator("nonce")
    @classmethod
    def validate_nonce(cls, v: bytes) -> bytes:
        if len(v) != NONCE_SIZE:
            raise ValueError(
                f"Nonce must be {NONCE_SIZE} bytes, got {len(v)}"
            )
        return v

    @field_serializer("nonce", "cipher")
    def serialize_byte_array(self, v: bytes) -> list[int]:
        return list(v)


Vault = dict[str, EncryptedEntry]

_VAULT_ADAPTER = TypeAdapter(dict[str, EncryptedEntry])


def _to_bytes(plaintext: Union[str, bytes]) -> bytes:
    if isinstance(plaintext, str):
        return plaintext.encode("utf-8")
    return bytes(plaintext)


class EncryptedVault:
    """File-backed encrypted vault.

    The file on disk is authoritative: ``get()`` always re-reads it instead
    of trusting any in-memory map held by the caller.
    """

    def __init__(self, config: VaultConfig):
        self._path: Path = config.vault_path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------
    # Label validation
    # ------------------------------------------------------------------

    def _validate_label(self, label: str) -> None:
        """Validate a vault label.

        Raises:
            ValueError: If label is empty or not a string.
        """
        if not isinstance(label, str) or not label:
            raise ValueError("Vault label cannot be empty")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> Vault:
        """Load the vault from disk.

        Returns:
            Mapping of label to EncryptedEntry; empty if no file exists.

        Raises:
            VaultCorruptedError: If the file exists but cannot be parsed.
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            return _VAULT_ADAPTER.validate_python(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as err:
            raise VaultCorruptedError(
                f"Vault file {self._path} is corrupted: {err}"
            ) from err

    @staticmethod
    def serialize(vault: Vault) -> bytes:
        """Return the persisted form of ``vault``."""
        return orjson.dumps(
            {label: entry.model_dump() for label, entry in vault.items()},
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
        )

    def save(self, vault: Vault) -> None:
        """Serialize the full map and replace vault.json."""
        atomic_write(self._path, self.serialize(vault))
        logger.debug("Vault saved: %d entr(ies)", len(vault))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(
        self,
        vault: Vault,
        label: str,
        plaintext: Union[str, bytes],
        key: MasterKey,
        rng: RandomSource = os.urandom,
    ) -> None:
        """Encrypt a secret under ``key``, store it at ``label`` and persist.

        An existing entry under the same label is silently replaced;
        uniqueness checks belong to the caller.

        Args:
            vault: In-memory vault to mutate.
            label: Secret name.
            plaintext: Secret value.
            key: Authenticated master key.
            rng: Random source for the nonce.
        """
        self._validate_label(label)
        nonce, ct = encrypt_secret(_to_bytes(plaintext), key, rng)
        entry = EncryptedEntry(nonce=nonce, cipher=ct)
        # The caller's map only changes once the new state is on disk.
        self.save({**vault, label: entry})
        vault[label] = entry
        logger.debug("Vault add: label=%s", label)

    def get(self, label: str, key: MasterKey) -> str | None:
        """Decrypt and return a secret, reading the vault from disk.

        Args:
            label: Secret name.
            key: Authenticated master key.

        Returns:
            The plaintext, or None if the label is absent or the entry does
            not decrypt under ``key``.

        Raises:
            EntryEncodingError: If the decrypted bytes are not valid UTF-8.
        """
        entry = self.load().get(label)
        if entry is None:
            return None
        try:
            plaintext = decrypt_secret(entry.nonce, entry.cipher, key)
        except InvalidTag:
            logger.debug("Vault get: label=%s failed authentication", label)
            return None
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise EntryEncodingError(
                f"Secret {label!r} is not valid UTF-8"
            ) from err

    def remove(self, vault: Vault, label: str) -> None:
        """Delete an existing secret and persist.

        Raises:
            LabelNotFoundError: If ``label`` is not in ``vault``.
        """
        if label not in vault:
            raise LabelNotFoundError(f"No secret stored under {label!r}")
        self.save({k: v for k, v in vault.items() if k != label})
        del vault[label]
        logger.debug("Vault remove: label=%s", label)

    def labels(self) -> list[str]:
        """Return the sorted labels currently on disk."""
        return sorted(self.load())

    def reencrypt(
        self,
        vault: Vault,
        old_key: MasterKey,
        new_key: MasterKey,
        rng: RandomSource = os.urandom,
    ) -> Vault:
        """Re-encrypt every entry from ``old_key`` to ``new_key``.

        The input map is left untouched and nothing is persisted.

        Returns:
            A new vault with a fresh nonce for every entry.

        Raises:
            RotationError: If any entry does not decrypt under ``old_key``.
        """
        rekeyed: Vault = {}
        for label, entry in vault.items():
            try:
                plaintext = decrypt_secret(entry.nonce, entry.cipher, old_key)
            except InvalidTag as err:
                raise RotationError(
                    f"Secret {label!r} does not decrypt under the current key"
                ) from err
            nonce, ct = encrypt_secret(plaintext, new_key, rng)
            rekeyed[label] = EncryptedEntry(nonce=nonce, cipher=ct)
        return rekeyed
