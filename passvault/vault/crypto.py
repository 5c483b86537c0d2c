"""
Vault Crypto Core — Key derivation, entry encryption/decryption, key handling.

- Master key: Argon2id(password, salt) → 32 bytes, held in a wipeable buffer
- Entries: AES-256-GCM under the master key → (nonce 12B, ciphertext+tag)

Security Note:
    Never log passwords, key material, plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
    The KDF returns an immutable ``bytes`` object that is copied into the
    MasterKey buffer; that transient copy cannot be scrubbed.
"""
import os
import hmac
import secrets
import logging
from typing import Callable, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import KeyDerivationError, SessionClosedError, SetupError
from .config import (
    DEFAULT_ARGON2_ITERATIONS,
    DEFAULT_ARGON2_LANES,
    DEFAULT_ARGON2_MEMORY_COST,
)

logger = logging.getLogger("passvault.vault")

NONCE_SIZE = 12  # 96-bit nonce
SALT_SIZE = 16
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16  # GCM tag

RandomSource = Callable[[int], bytes]

# Printable ASCII, 0x20 (space) through 0x7E (~).
PASSWORD_ALPHABET = "".join(chr(c) for c in range(0x20, 0x7F))


def random_bytes(size: int, rng: RandomSource = os.urandom) -> bytes:
    """Draw exactly ``size`` bytes from ``rng``.

    Raises:
        SetupError: If the random source fails or returns a short read.
    """
    try:
        data = rng(size)
    except (OSError, NotImplementedError) as err:
        raise SetupError(f"Random source unavailable: {err}") from err
    if not isinstance(data, (bytes, bytearray)) or len(data) != size:
        raise SetupError(f"Random source did not return {size} bytes")
    return bytes(data)


class MasterKey:
    """A 32-byte symmetric key held in a mutable buffer.

    The key is a capability: whoever holds an unwiped MasterKey is assumed to
    have already authenticated it against the verification token.
    """

    __slots__ = ("_buffer",)

    def __init__(self, material: Union[bytes, bytearray]):
        if len(material) != KEY_LENGTH:
            raise ValueError(
                f"Master key must be exactly {KEY_LENGTH} bytes, "
                f"got {len(material)}"
            )
        self._buffer = bytearray(material)

    @property
    def material(self) -> bytearray:
        """Raw key buffer.

        Raises:
            SessionClosedError: If the key has been wiped.
        """
        if self._buffer is None:
            raise SessionClosedError("Master key has been wiped")
        return self._buffer

    @property
    def wiped(self) -> bool:
        return self._buffer is None

    def wipe(self) -> None:
        """Zero the key buffer and drop it. Safe to call more than once."""
        if self._buffer is not None:
            for i in range(len(self._buffer)):
                self._buffer[i] = 0
            self._buffer = None

    def cipher(self) -> AESGCM:
        return AESGCM(self.material)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterKey):
            return NotImplemented
        return hmac.compare_digest(self.material, other.material)

    __hash__ = None

    def __len__(self) -> int:
        return len(self.material)

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else "live"
        return f"<MasterKey [{state}]>"

    def __enter__(self) -> "MasterKey":
        return self

    def __exit__(self, *exc) -> None:
        self.wipe()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_master_key(
    password: Union[bytes, str],
    salt: bytes,
    *,
    iterations: int = DEFAULT_ARGON2_ITERATIONS,
    memory_cost: int = DEFAULT_ARGON2_MEMORY_COST,
    lanes: int = DEFAULT_ARGON2_LANES,
) -> MasterKey:
    """Derive a 32-byte master key using Argon2id.

    Args:
        password: Master password; ``str`` values are UTF-8 encoded.
        salt: Per-vault salt (16 bytes).
        iterations: Argon2 time cost.
        memory_cost: Argon2 memory cost in KiB.
        lanes: Argon2 parallelism.

    Returns:
        MasterKey wrapping the derived key.

    Raises:
        KeyDerivationError: If Argon2id is unavailable or misconfigured.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    try:
        kdf = Argon2id(
            salt=bytes(salt),
            length=KEY_LENGTH,
            iterations=iterations,
            lanes=lanes,
            memory_cost=memory_cost,
        )
        return MasterKey(kdf.derive(password))
    except (UnsupportedAlgorithm, ValueError, TypeError) as err:
        raise KeyDerivationError(f"Argon2id key derivation failed: {err}") from err


# ---------------------------------------------------------------------------
# Entry encryption
# ---------------------------------------------------------------------------

def encrypt_secret(
    plaintext: bytes, key: MasterKey, rng: RandomSource = os.urandom,
) -> tuple[bytes, bytes]:
    """Encrypt plaintext under the master key with a fresh nonce.

    Args:
        plaintext: Data to encrypt.
        key: Authenticated master key.
        rng: Random source for the nonce.

    Returns:
        Tuple of (nonce 12B, ciphertext + GCM tag).
    """
    nonce = random_bytes(NONCE_SIZE, rng)
    return nonce, key.cipher().encrypt(nonce, plaintext, None)


def decrypt_secret(nonce: bytes, ciphertext: bytes, key: MasterKey) -> bytes:
    """Decrypt an entry.

    Raises:
        cryptography.exceptions.InvalidTag: If the key is wrong or the
            ciphertext was modified.
    """
    return key.cipher().decrypt(nonce, ciphertext, None)


# ---------------------------------------------------------------------------
# Password generation
# ---------------------------------------------------------------------------

def generate_password(length: int = 32) -> str:
    """Generate a random password from printable ASCII characters."""
    if length < 1:
        raise ValueError("Password length must be positive")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
