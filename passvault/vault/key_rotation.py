"""
Vault Key Rotation — Re-encryption of every secret when the master password changes.

The salt is reused; only the password changes. The re-encrypted vault and
a fresh verification token are committed together (see ``storage``), so a
crash leaves either the old key or the new key valid for both files.

Security Note:
    Plaintext exists in memory only during re-encryption of each entry.
    Never log plaintext or ciphertext values.
"""
import os
import hmac
import logging

from ..exceptions import PasswordMismatchError, ProfileNotFoundError
from .config import VaultConfig
from .crypto import MasterKey, RandomSource, derive_master_key
from .encrypted_vault import EncryptedVault
from .salt_store import SaltStore
from .storage import commit_files
from .verification import VerificationToken

logger = logging.getLogger("passvault.vault")


def rotate_master_password(
    config: VaultConfig,
    old_key: MasterKey,
    new_password: str,
    confirm_password: str,
    rng: RandomSource = os.urandom,
) -> MasterKey:
    """Re-encrypt the vault and replace the verification token for a new password.

    Args:
        config: Vault configuration.
        old_key: Currently authenticated master key.
        new_password: New master password.
        confirm_password: Second entry of the new password.
        rng: Random source for nonces and the token payload.

    Returns:
        The new master key. The caller adopts it and wipes ``old_key``.

    Raises:
        PasswordMismatchError: If the two entries differ. Nothing changes.
        ProfileNotFoundError: If the salt is missing.
        RotationError: If a stored secret does not decrypt under ``old_key``.
        CommitIncompleteError: If the new files were committed but not
            installed. The next ``recover_pending`` finishes the rotation.
    """
    if not hmac.compare_digest(
        new_password.encode("utf-8"), confirm_password.encode("utf-8")
    ):
        raise PasswordMismatchError("New password entries do not match")

    salt = SaltStore(config).load()
    if salt is None:
        raise ProfileNotFoundError(f"Salt file {config.salt_path} is missing")

    vault_store = EncryptedVault(config)
    token = VerificationToken(config)

    new_key = derive_master_key(new_password, salt, **config.kdf_params)
    try:
        vault = vault_store.load()
        logger.info("Starting master password rotation (%d entries)", len(vault))
        rekeyed = vault_store.reencrypt(vault, old_key, new_key, rng)
        commit_files(
            config.data_dir,
            {
                vault_store.path: vault_store.serialize(rekeyed),
                token.path: token.build(new_key, rng),
            },
        )
    except BaseException:
        new_key.wipe()
        raise

    logger.info("Master password rotation complete: %d entries", len(rekeyed))
    return new_key
