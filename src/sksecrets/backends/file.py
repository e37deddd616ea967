"""
Local encrypted file store.

The store is one JSON array of records on disk:

    [{"Value": "<base64 salt||nonce||ciphertext>",
      "KeyInfo": {"Name": ..., "CreatedAt": ..., "Owner": ..., "Info": ...}}]

An empty store is a zero-byte file, never ``null`` or ``[]``, so a
freshly created store and an emptied one look the same. Every mutation
loads the whole file, changes it in memory and rewrites it.
"""

from __future__ import annotations

import getpass
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from .. import cipher
from .._files import write_atomic
from ..errors import (
    ConfigurationError,
    FormatError,
    NotFoundError,
    StoreIOError,
)
from ..models import Key, Profile, SecretRecord
from . import Backend

logger = logging.getLogger("sksecrets.backends.file")

STORE_SUFFIX = ".secrets.sksecrets"
PASSPHRASE_PARAMETER = "masterPassword"

_records_adapter = TypeAdapter(list[SecretRecord])


def store_location(profile: Profile) -> Path:
    """Resolve where a profile's store file lives.

    Args:
        profile: Profile with an optional explicit ``location``.

    Returns:
        Path: The explicit location, or ``~/<project_id>.secrets.sksecrets``.
    """
    if profile.location:
        return Path(profile.location).expanduser()
    return Path.home() / f"{profile.project_id}{STORE_SUFFIX}"


def _current_owner() -> str:
    """Display name of the OS user, else the login name, else "".

    The display name is the first comma-separated field of the passwd
    GECOS entry.
    """
    if os.name == "posix":
        import pwd

        try:
            name = pwd.getpwuid(os.getuid()).pw_gecos.split(",")[0].strip()
        except KeyError:
            name = ""
        if name:
            return name
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


class FileStore(Backend):
    """Passphrase-encrypted secrets in a single local file.

    Each value is sealed on its own (see :mod:`sksecrets.cipher`); key
    metadata stays readable so listing never needs the passphrase.

    Put appends without checking for an existing record of the same
    name, and get returns the first match, so a second put under a name
    stays invisible until the first record is deleted.

    There is no locking. Two processes mutating the same file race and
    the last writer wins for the whole file. Writes go through a
    temporary file and an atomic rename, which only guarantees that a
    reader never sees a half-written store.

    Args:
        profile: Profile naming the store location and project.
        passphrase: Master passphrase used to seal and open values.
    """

    overwrites = False

    def __init__(self, profile: Profile, passphrase: Optional[str] = None) -> None:
        super().__init__(profile, passphrase)
        self.path = store_location(profile)
        self._passphrase = passphrase

    @classmethod
    def requires_secret(cls) -> bool:
        return True

    def set_parameter(self, name: str, value: Any) -> None:
        if name != PASSPHRASE_PARAMETER:
            super().set_parameter(name, value)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        self._passphrase = value

    def _require_passphrase(self) -> str:
        if not self._passphrase:
            raise ConfigurationError(
                f"a master passphrase is required for store {self.path}"
            )
        return self._passphrase

    # ── Persistence ────────────────────────────────────────────────

    def ensure_exists(self) -> None:
        """Create an empty, owner-only store file if none exists."""
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return
        except OSError as exc:
            raise StoreIOError(f"cannot create store {self.path}: {exc}") from exc
        os.close(fd)
        logger.info("Created empty secret store at %s", self.path)

    def load(self) -> list[SecretRecord]:
        """Read every record in stored order.

        Raises:
            StoreIOError: If the file cannot be read.
            FormatError: If the content is not a valid record array.
        """
        self.ensure_exists()
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise StoreIOError(f"cannot read store {self.path}: {exc}") from exc

        if not data:
            return []
        try:
            records = _records_adapter.validate_json(data)
        except ValidationError as exc:
            raise FormatError(f"store {self.path} is malformed: {exc}") from exc
        logger.debug("Loaded %d record(s) from %s", len(records), self.path)
        return records

    def _write(self, records: list[SecretRecord]) -> None:
        """Replace the store with ``records``; empty means zero bytes."""
        data = b""
        if records:
            data = _records_adapter.dump_json(records, by_alias=True)

        try:
            write_atomic(self.path, data)
        except OSError as exc:
            raise StoreIOError(f"cannot write store {self.path}: {exc}") from exc

        logger.info("Wrote %d record(s) to %s", len(records), self.path)

    # ── Backend contract ───────────────────────────────────────────

    def get(self, key: str) -> bytes:
        for record in self.load():
            if record.key_info.name == key:
                return cipher.decrypt(record.value, self._require_passphrase())
        raise NotFoundError(key)

    def list(self) -> list[Key]:
        return [record.key_info for record in self.load()]

    def check_exists(self, key: str) -> bool:
        return any(record.key_info.name == key for record in self.load())

    def put(self, key: str, value: str, overwrite: bool = False) -> None:
        """Append a new sealed record. ``overwrite`` has no effect here."""
        self.ensure_exists()
        sealed = cipher.encrypt(value.encode("utf-8"), self._require_passphrase())
        record = SecretRecord(
            value=sealed,
            key_info=Key(
                name=key,
                created_at=datetime.now(timezone.utc),
                owner=_current_owner(),
                info="",
            ),
        )
        records = self.load()
        records.append(record)
        self._write(records)

    def delete(self, key: str) -> None:
        records = self.load()
        kept = [r for r in records if r.key_info.name != key]
        self._write(kept)
