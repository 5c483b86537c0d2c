"""
Vault Errors — Typed outcomes for the key-management core.

Recoverable conditions (mismatched confirmation, wrong password, missing
label) and fatal ones (tamper, corruption, setup failure) are separate
classes so the front end can pick per-condition handling.
"""


class VaultError(Exception):
    """Base error for every vault failure."""


class PasswordMismatchError(VaultError):
    """The two password entries differ."""


class InvalidPasswordError(VaultError):
    """The candidate key does not open the verification token."""


class LabelNotFoundError(VaultError, KeyError):
    """A label required to exist is missing from the vault."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class ProfileNotFoundError(VaultError):
    """Salt or verification token is missing."""


class ProfileExistsError(VaultError):
    """A master password is already configured."""


class SetupError(VaultError):
    """Profile setup could not complete (RNG or filesystem failure)."""


class KeyDerivationError(VaultError):
    """The password hashing function failed."""


class IntegrityError(VaultError):
    """Persisted data is structurally invalid."""


class TamperError(IntegrityError):
    """The verification token is shorter than its nonce prefix."""


class VaultCorruptedError(IntegrityError):
    """vault.json exists but cannot be parsed."""


class EntryEncodingError(IntegrityError):
    """A decrypted secret is not valid UTF-8."""


class RotationError(VaultError):
    """Master password rotation aborted."""


class SessionClosedError(VaultError):
    """The session key has already been wiped."""


class CommitIncompleteError(VaultError):
    """A multi-file commit passed its marker but could not be installed.

    The new state is durable and is finished by the next recovery; the
    current in-memory state must not be used any further.
    """
