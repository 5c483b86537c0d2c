"""
Vault Configuration — Data directory and key-derivation settings.

Reads overrides from environment variables:
    PASSVAULT_DATA_DIR = <directory holding salt.bin, verify.bin, vault.json>
    PASSVAULT_ARGON2_ITERATIONS = <integer>
    PASSVAULT_ARGON2_MEMORY_COST = <integer, KiB>
    PASSVAULT_ARGON2_LANES = <integer>

Security Note:
    Nothing in this module touches key material. Work factors are public.
"""
import os
import sys
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("passvault.vault")

APP_DIR_NAME = "passvault"

# Argon2 library defaults (m=19 MiB, t=2, p=1).
DEFAULT_ARGON2_ITERATIONS = 2
DEFAULT_ARGON2_MEMORY_COST = 19456
DEFAULT_ARGON2_LANES = 1


def default_data_dir() -> Path:
    """Return the per-user application-data directory for the vault.

    Returns:
        ``%APPDATA%`` on Windows, ``~/Library/Application Support`` on macOS,
        ``$XDG_DATA_HOME`` (or ``~/.local/share``) elsewhere, joined with
        the application directory name.
    """
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        base = os.environ.get("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_DIR_NAME


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return int(raw)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    data_dir: Path = Field(default_factory=default_data_dir)
    salt_file: str = Field(default="salt.bin")
    verify_file: str = Field(default="verify.bin")
    vault_file: str = Field(default="vault.json")
    argon2_iterations: int = Field(default=DEFAULT_ARGON2_ITERATIONS, ge=1)
    argon2_memory_cost: int = Field(default=DEFAULT_ARGON2_MEMORY_COST, ge=8)
    argon2_lanes: int = Field(default=DEFAULT_ARGON2_LANES, ge=1, le=255)
    password_length: int = Field(default=32, ge=8, le=1024)

    @field_validator("salt_file", "verify_file", "vault_file")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """File names must be plain names inside data_dir."""
        if not v or Path(v).name != v:
            raise ValueError(f"Invalid vault file name: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_memory_cost(self) -> "VaultConfig":
        """Argon2 requires at least 8 KiB of memory per lane."""
        if self.argon2_memory_cost < 8 * self.argon2_lanes:
            raise ValueError(
                f"argon2_memory_cost {self.argon2_memory_cost} must be at "
                f"least 8 * argon2_lanes ({8 * self.argon2_lanes})"
            )
        return self

    @model_validator(mode="after")
    def validate_distinct_files(self) -> "VaultConfig":
        """Ensure the three persisted files do not alias each other."""
        names = {self.salt_file, self.verify_file, self.vault_file}
        if len(names) != 3:
            raise ValueError("salt_file, verify_file and vault_file must differ")
        return self

    @property
    def salt_path(self) -> Path:
        return self.data_dir / self.salt_file

    @property
    def verify_path(self) -> Path:
        return self.data_dir / self.verify_file

    @property
    def vault_path(self) -> Path:
        return self.data_dir / self.vault_file

    @property
    def kdf_params(self) -> dict[str, int]:
        """Keyword arguments for ``derive_master_key``."""
        return {
            "iterations": self.argon2_iterations,
            "memory_cost": self.argon2_memory_cost,
            "lanes": self.argon2_lanes,
        }

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        data_dir = os.environ.get("PASSVAULT_DATA_DIR")
        config = cls(
            data_dir=Path(data_dir) if data_dir else default_data_dir(),
            argon2_iterations=_env_int(
                "PASSVAULT_ARGON2_ITERATIONS", DEFAULT_ARGON2_ITERATIONS
            ),
            argon2_memory_cost=_env_int(
                "PASSVAULT_ARGON2_MEMORY_COST", DEFAULT_ARGON2_MEMORY_COST
            ),
            argon2_lanes=_env_int(
                "PASSVAULT_ARGON2_LANES", DEFAULT_ARGON2_LANES
            ),
        )
        logger.debug("Vault data directory: %s", config.data_dir)
        return config
