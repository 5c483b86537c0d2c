"""PassVault — Password-protected local secrets vault."""
from .version import __version__
from .session import VaultSession
from .vault import VaultConfig

__all__ = ["VaultSession", "VaultConfig", "__version__"]
