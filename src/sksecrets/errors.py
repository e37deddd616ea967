"""Error taxonomy shared by every sksecrets module.

All errors derive from SecretsError so the CLI can report them in
one place. Cryptographic and filesystem errors are never retried.
"""

from __future__ import annotations


class SecretsError(Exception):
    """Base class for every sksecrets failure."""


class NotFoundError(SecretsError):
    """Raised when a key is absent from a backend."""

    def __init__(self, key: str) -> None:
        super().__init__(f"{key} not found")
        self.key = key


class AlreadyExistsError(SecretsError):
    """Raised when a put would overwrite a key and overwrite is off."""

    def __init__(self, key: str) -> None:
        super().__init__(f"secret with key '{key}' already exists")
        self.key = key


class AuthenticationError(SecretsError):
    """Raised when sealed data cannot be opened.

    Carries no detail: a wrong passphrase and a corrupted ciphertext
    raise the same message.
    """


class FormatError(SecretsError):
    """Raised for malformed store, backup, key or config content."""


class StoreIOError(SecretsError, OSError):
    """Raised when reading or writing a store, backup or key file fails."""


class RandomnessError(SecretsError):
    """Raised when the OS random source cannot supply the requested bytes."""


class ConfigurationError(SecretsError):
    """Raised for missing or invalid profiles and backend parameters."""
