"""Vault core — Salt, key derivation, verification token and encrypted storage.

Security Note (Threat Model):
    The master key lives in process memory while a session is open and is
    zeroed on close. A memory dump of the running process, or a compromised
    host, can expose it. Hardware-backed key storage is out of scope.
"""

from .config import VaultConfig, default_data_dir
from .crypto import MasterKey, derive_master_key, generate_password
from .salt_store import SaltStore
from .verification import VerificationToken
from .encrypted_vault import EncryptedEntry, EncryptedVault
from .key_rotation import rotate_master_password
from .storage import recover_pending

__all__ = [
    "VaultConfig",
    "default_data_dir",
    "MasterKey",
    "derive_master_key",
    "generate_password",
    "SaltStore",
    "VerificationToken",
    "EncryptedEntry",
    "EncryptedVault",
    "rotate_master_password",
    "recover_pending",
]
