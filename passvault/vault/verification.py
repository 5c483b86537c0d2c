"""
Verification Token — Proves a candidate key is correct without storing it.

Format of verify.bin: [nonce 12B][AES-GCM(random 32B payload) + tag 16B]

AEAD decryption success under a candidate key is the only correctness
proof; the payload itself is never inspected or compared.
"""
import os
import logging
from pathlib import Path

from cryptography.exceptions import InvalidTag

from ..exceptions import ProfileNotFoundError, TamperError
from .config import VaultConfig
from .crypto import (
    NONCE_SIZE,
    KEY_LENGTH,
    MasterKey,
    RandomSource,
    encrypt_secret,
    decrypt_secret,
    random_bytes,
)
from .storage import atomic_write

logger = logging.getLogger("passvault.vault")

PAYLOAD_SIZE = KEY_LENGTH


class VerificationToken:
    """Creates and checks ``verify.bin``."""

    def __init__(self, config: VaultConfig):
        self._path: Path = config.verify_path

    @property
    def path(self) -> Path:
        return self._path

    def build(self, key: MasterKey, rng: RandomSource = os.urandom) -> bytes:
        """Return a new token blob for ``key`` without writing it."""
        payload = random_bytes(PAYLOAD_SIZE, rng)
        nonce, ct = encrypt_secret(payload, key, rng)
        return nonce + ct

    def create(self, key: MasterKey, rng: RandomSource = os.urandom) -> None:
        """Create a fresh token for ``key``, replacing any previous one.

        Args:
            key: Master key the token will authenticate.
            rng: Random source for payload and nonce.
        """
        atomic_write(self._path, self.build(key, rng))
        logger.info("Verification token written to %s", self._path)

    def verify(self, key: MasterKey) -> bool:
        """Check whether ``key`` opens the verification token.

        Args:
            key: Candidate master key.

        Returns:
            True if AEAD decryption succeeds, False otherwise (wrong password).

        Raises:
            ProfileNotFoundError: If verify.bin does not exist.
            TamperError: If verify.bin is shorter than its nonce prefix.
        """
        try:
            contents = self._path.read_bytes()
        except FileNotFoundError as err:
            raise ProfileNotFoundError(
                f"Verification token {self._path} does not exist"
            ) from err
        # The length never changes once written; a shorter file was modified.
        if len(contents) < NONCE_SIZE:
            raise TamperError(
                f"Verification token {self._path} was tampered with "
                f"({len(contents)} bytes)"
            )
        nonce = contents[:NONCE_SIZE]
        ct = contents[NONCE_SIZE:]
        try:
            decrypt_secret(nonce, ct, key)
        except InvalidTag:
            logger.debug("Verification token rejected candidate key")
            return False
        return True
