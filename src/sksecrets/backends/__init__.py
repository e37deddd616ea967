"""
Secret backends -- where the values live.

Every backend exposes the same operation set so commands, backup and
restore never care which one they talk to. The local encrypted file
store ships here; cloud secret managers and vault services plug in as
external adapters implementing :class:`Backend`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..errors import ConfigurationError
from ..models import BackendType, Key, Profile

logger = logging.getLogger("sksecrets.backends")


class Backend(ABC):
    """Uniform contract for a secret backend.

    A backend is bound to one profile at construction, so no call takes
    a scope argument. Backends are context managers; leaving the block
    calls :meth:`close`.

    Args:
        profile: The profile this backend serves.
        passphrase: Master passphrase, for backends that need one.
    """

    #: Whether put with overwrite=True replaces the value get returns.
    overwrites = True

    def __init__(self, profile: Profile, passphrase: Optional[str] = None) -> None:
        self.profile = profile

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Fetch the value stored under ``key``.

        Raises:
            NotFoundError: If the key is absent.
            AuthenticationError: If the value exists but cannot be opened.
        """

    @abstractmethod
    def list(self) -> list[Key]:
        """Return metadata for every stored key. Values are never read."""

    @abstractmethod
    def check_exists(self, key: str) -> bool:
        """Check whether ``key`` is present."""

    @abstractmethod
    def put(self, key: str, value: str, overwrite: bool = False) -> None:
        """Store ``value`` under ``key``.

        Backends that support it raise AlreadyExistsError when the key
        exists and ``overwrite`` is false.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is not an error."""

    def close(self) -> None:
        """Release held connections. Nothing to release by default."""

    @classmethod
    def requires_secret(cls) -> bool:
        """Whether a passphrase must be supplied before get/put."""
        return False

    def set_parameter(self, name: str, value: Any) -> None:
        """Runtime configuration channel.

        Prefer passing configuration at construction. Unknown names are
        rejected rather than silently dropped.
        """
        raise ConfigurationError(
            f"{type(self).__name__} does not accept parameter '{name}'"
        )

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def backend_class(profile: Profile) -> type[Backend]:
    """Resolve the backend class a profile names.

    Raises:
        ConfigurationError: If the backend kind is not provided here.
    """
    if profile.backend == BackendType.FILE:
        from .file import FileStore

        return FileStore

    raise ConfigurationError(
        f"backend '{profile.backend.value}' for profile '{profile.name}' "
        "is not available; install an adapter that provides it"
    )


def get_backend(profile: Profile, passphrase: Optional[str] = None) -> Backend:
    """Build the backend a profile names.

    Args:
        profile: The target profile.
        passphrase: Master passphrase for backends that need one.

    Returns:
        Backend: A ready-to-use backend.
    """
    cls = backend_class(profile)
    logger.debug("Opening %s backend for profile '%s'", profile.backend.value, profile.name)
    return cls(profile, passphrase=passphrase)


__all__ = ["Backend", "backend_class", "get_backend"]
