"""Tests for rotate_master_password()."""
import os

import pytest

from passvault.exceptions import (
    CommitIncompleteError,
    PasswordMismatchError,
    ProfileNotFoundError,
    RotationError,
)
from passvault.vault import storage
from passvault.vault.crypto import derive_master_key
from passvault.vault.key_rotation import rotate_master_password
from passvault.vault.salt_store import SaltStore
from passvault.vault.storage import COMMIT_MARKER, recover_pending
from passvault.vault.verification import VerificationToken

SECRETS = {"email": "s3cr3t", "bank": "hunter2", "wifi": "zażółć gęślą"}


@pytest.fixture
def populated(config, store, profile):
    vault = {}
    for label, secret in SECRETS.items():
        store.add(vault, label, secret, profile)
    return profile


def _snapshot(config):
    return {
        name: (config.data_dir / name).read_bytes()
        for name in sorted(os.listdir(config.data_dir))
    }


class TestRotation:
    """Tests for a successful rotation."""

    def test_secrets_follow_new_key(self, config, store, populated):
        """Test every label moves from the old key to the new key."""
        new_key = rotate_master_password(config, populated, "new pw", "new pw")
        for label, secret in SECRETS.items():
            assert store.get(label, new_key) == secret
            assert store.get(label, populated) is None

    def test_token_replaced(self, config, populated):
        token = VerificationToken(config)
        new_key = rotate_master_password(config, populated, "new pw", "new pw")
        assert token.verify(new_key) is True
        assert token.verify(populated) is False

    def test_salt_reused(self, config, populated):
        before = SaltStore(config).load()
        new_key = rotate_master_password(config, populated, "new pw", "new pw")
        assert SaltStore(config).load() == before
        assert new_key == derive_master_key("new pw", before, **config.kdf_params)

    def test_old_key_untouched(self, config, populated):
        """Test adopting the new key and wiping the old one is the caller's job."""
        rotate_master_password(config, populated, "new pw", "new pw")
        assert populated.wiped is False

    def test_no_commit_artifacts_left(self, config, populated):
        rotate_master_password(config, populated, "new pw", "new pw")
        assert sorted(os.listdir(config.data_dir)) == [
            "salt.bin", "vault.json", "verify.bin",
        ]

    def test_empty_vault(self, config, profile):
        new_key = rotate_master_password(config, profile, "new pw", "new pw")
        assert VerificationToken(config).verify(new_key) is True


class TestRotationFailures:
    """Tests for rotations that must not change state."""

    def test_mismatched_confirmation(self, config, populated):
        before = _snapshot(config)
        with pytest.raises(PasswordMismatchError):
            rotate_master_password(config, populated, "new pw", "new pW")
        assert _snapshot(config) == before

    def test_missing_salt(self, config, populated):
        config.salt_path.unlink()
        with pytest.raises(ProfileNotFoundError):
            rotate_master_password(config, populated, "new pw", "new pw")

    def test_entry_under_foreign_key(self, config, store, populated, other_key):
        """Test a vault/key mismatch aborts before anything is written."""
        vault = store.load()
        store.add(vault, "stray", "value", other_key)
        before = _snapshot(config)
        with pytest.raises(RotationError):
            rotate_master_password(config, populated, "new pw", "new pw")
        assert _snapshot(config) == before


class TestRotationCrash:
    """Tests for crashes in the middle of the commit."""

    def test_crash_after_marker_rolls_forward(
        self, config, store, populated, monkeypatch,
    ):
        """Test vault and token always agree after recovery.

        The install is retried once and then reported as incomplete.
        """
        with monkeypatch.context() as m:
            def crash(data_dir, names):
                raise RuntimeError("power loss")

            m.setattr(storage, "_install", crash)
            with pytest.raises(CommitIncompleteError):
                rotate_master_password(config, populated, "new pw", "new pw")

        assert (config.data_dir / COMMIT_MARKER).exists()
        # Nothing installed yet: old key still matches both files.
        assert VerificationToken(config).verify(populated) is True
        assert store.get("email", populated) == "s3cr3t"

        assert recover_pending(config.data_dir) == "rolled-forward"
        salt = SaltStore(config).load()
        new_key = derive_master_key("new pw", salt, **config.kdf_params)
        assert VerificationToken(config).verify(new_key) is True
        for label, secret in SECRETS.items():
            assert store.get(label, new_key) == secret

    def test_crash_before_marker_rolls_back(
        self, config, store, populated, monkeypatch,
    ):
        real_write = storage.atomic_write

        def crash_on_marker(path, data):
            if path.name == COMMIT_MARKER:
                raise OSError("disk full")
            real_write(path, data)

        with monkeypatch.context() as m:
            m.setattr(storage, "atomic_write", crash_on_marker)
            with pytest.raises(OSError):
                rotate_master_password(config, populated, "new pw", "new pw")

        recover_pending(config.data_dir)
        assert VerificationToken(config).verify(populated) is True
        for label, secret in SECRETS.items():
            assert store.get(label, populated) == secret
