"""Shared fixtures: an isolated data directory and cheap Argon2 parameters."""
import pytest

from passvault.vault.config import VaultConfig
from passvault.vault.crypto import derive_master_key
from passvault.vault.encrypted_vault import EncryptedVault
from passvault.vault.salt_store import SaltStore
from passvault.vault.verification import VerificationToken

# Minimum legal Argon2id cost; keeps the suite fast.
FAST_KDF = {
    "argon2_iterations": 1,
    "argon2_memory_cost": 8,
    "argon2_lanes": 1,
}


@pytest.fixture
def config(tmp_path):
    """VaultConfig rooted in a fresh temporary directory."""
    return VaultConfig(data_dir=tmp_path / "passvault", **FAST_KDF)


@pytest.fixture
def salt():
    return bytes(range(16))


@pytest.fixture
def key(config, salt):
    """Master key for the password 'correct horse'."""
    return derive_master_key("correct horse", salt, **config.kdf_params)


@pytest.fixture
def other_key(config, salt):
    """Master key for a different password under the same salt."""
    return derive_master_key("wrong", salt, **config.kdf_params)


@pytest.fixture
def store(config):
    return EncryptedVault(config)


@pytest.fixture
def profile(config):
    """A configured profile: stored salt, verification token, master key."""
    stored_salt = SaltStore(config).generate_and_store()
    master = derive_master_key("correct horse", stored_salt, **config.kdf_params)
    VerificationToken(config).create(master)
    return master
