"""Tests for SaltStore."""
import pytest

from passvault.exceptions import SetupError
from passvault.vault.config import VaultConfig
from passvault.vault.salt_store import SaltStore


@pytest.fixture
def salts(config):
    return SaltStore(config)


class TestSaltExists:
    """Tests for salt_exists()."""

    def test_empty_directory(self, salts):
        assert salts.salt_exists() is False

    def test_salt_without_token(self, salts):
        """Test a salt alone is an incomplete profile."""
        salts.generate_and_store()
        assert salts.salt_exists() is False

    def test_token_without_salt(self, salts, config):
        config.data_dir.mkdir(parents=True)
        config.verify_path.write_bytes(b"\x00" * 60)
        assert salts.salt_exists() is False

    def test_both_present(self, salts, config):
        salts.generate_and_store()
        config.verify_path.write_bytes(b"\x00" * 60)
        assert salts.salt_exists() is True


class TestGenerateAndStore:
    """Tests for generate_and_store()."""

    def test_creates_directories_and_file(self, salts, config):
        salt = salts.generate_and_store()
        assert len(salt) == 16
        assert config.salt_path.read_bytes() == salt

    def test_uses_random_source(self, salts):
        salt = salts.generate_and_store(lambda size: b"\x07" * size)
        assert salt == b"\x07" * 16

    def test_random_source_failure_leaves_no_file(self, salts, config):
        def broken(size):
            raise OSError("no entropy")

        with pytest.raises(SetupError):
            salts.generate_and_store(broken)
        assert not config.salt_path.exists()

    def test_filesystem_failure(self, tmp_path):
        """Test an unwritable data directory aborts setup."""
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        config = VaultConfig(data_dir=blocker / "passvault")
        with pytest.raises(SetupError):
            SaltStore(config).generate_and_store()


class TestLoad:
    """Tests for load()."""

    def test_missing(self, salts):
        assert salts.load() is None

    def test_roundtrip(self, salts):
        salt = salts.generate_and_store()
        assert salts.load() == salt

    @pytest.mark.parametrize("size", [0, 15, 17, 32])
    def test_wrong_length_is_not_found(self, salts, config, size):
        config.data_dir.mkdir(parents=True)
        config.salt_path.write_bytes(b"\x01" * size)
        assert salts.load() is None

    def test_remove(self, salts, config):
        salts.generate_and_store()
        salts.remove()
        assert not config.salt_path.exists()
        salts.remove()
