"""Portable secret backups.

A backup is a JSON document holding a snapshot of name -> value pairs
taken from any backend:

    {"Payload": {"db-pass": "s3cr3t", ...}, "WrappedKey": null}

When a recipient public key is given the snapshot is hybrid-encrypted:

    1. a random 32-byte payload key is generated
    2. the serialised mapping is sealed with :func:`sksecrets.cipher.encrypt`
       using the payload key as the passphrase
    3. the payload key is wrapped with RSA-OAEP (SHA-256) for the recipient

    {"Payload": "<base64 sealed mapping>", "WrappedKey": "<base64>"}

Only the holder of the matching private key can restore it. Restore is
best-effort: every entry is put under ``<name>_restore`` so a live
secret is never silently replaced, and a failed put does not stop the
rest.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from pydantic import ValidationError

from . import cipher
from ._files import write_atomic
from .backends import Backend
from .errors import (
    AuthenticationError,
    ConfigurationError,
    FormatError,
    RandomnessError,
    StoreIOError,
)
from .models import BackupEnvelope, RestoreResult

logger = logging.getLogger("sksecrets.backup")

PAYLOAD_KEY_SIZE = 32
RESTORE_SUFFIX = "_restore"


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def collect_secrets(source: Backend, filter: str = "") -> dict[str, str]:
    """Read every secret whose name contains ``filter``.

    A name stored more than once is read once, through ``source.get``,
    so it resolves the same way a normal get would.

    Args:
        source: Backend to read from.
        filter: Substring to match against key names. Empty matches all.

    Returns:
        dict[str, str]: name -> value.
    """
    items: dict[str, str] = {}
    for key in source.list():
        if filter not in key.name or key.name in items:
            continue
        value = source.get(key.name)
        try:
            items[key.name] = value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError(f"value of '{key.name}' is not UTF-8 text") from exc
    return items


def seal_secrets(items: dict[str, str], public_key: rsa.RSAPublicKey) -> BackupEnvelope:
    """Hybrid-encrypt a mapping for the holder of ``public_key``."""
    payload_key = cipher.random_bytes(PAYLOAD_KEY_SIZE)
    data = json.dumps(items, sort_keys=True, separators=(",", ":")).encode("utf-8")
    sealed = cipher.encrypt(data, payload_key)
    wrapped = public_key.encrypt(payload_key, _oaep())
    return BackupEnvelope(
        payload=base64.b64encode(sealed).decode("ascii"),
        wrapped_key=wrapped,
    )


def create_backup(
    source: Backend,
    filter: str = "",
    public_key: Optional[rsa.RSAPublicKey] = None,
) -> BackupEnvelope:
    """Snapshot the matching secrets of ``source``.

    Args:
        source: Backend to back up.
        filter: Substring filter on key names.
        public_key: Recipient key. Without one the backup is cleartext.

    Returns:
        BackupEnvelope: The snapshot, ready for :func:`write_backup`.
    """
    items = collect_secrets(source, filter)
    logger.info("Collected %d secret(s) for backup (filter=%r)", len(items), filter)
    if public_key is None:
        return BackupEnvelope(payload=items)
    return seal_secrets(items, public_key)


def write_backup(envelope: BackupEnvelope, path: str | Path) -> Path:
    """Write a backup to disk, readable by the owner only.

    An existing file at ``path`` is replaced, mode included.
    """
    target = Path(path).expanduser()
    data = envelope.model_dump_json(by_alias=True, indent=2)
    try:
        write_atomic(target, data.encode("utf-8"))
    except OSError as exc:
        raise StoreIOError(f"cannot write backup {target}: {exc}") from exc

    logger.info(
        "Backup written: %s (%s)", target,
        "encrypted" if envelope.encrypted else "cleartext",
    )
    return target


def read_backup(path: str | Path) -> BackupEnvelope:
    """Parse a backup file.

    Raises:
        StoreIOError: If the file cannot be read.
        FormatError: If it is not a backup document.
    """
    source = Path(path).expanduser()
    try:
        data = source.read_bytes()
    except OSError as exc:
        raise StoreIOError(f"cannot read backup {source}: {exc}") from exc
    try:
        return BackupEnvelope.model_validate_json(data)
    except ValidationError as exc:
        raise FormatError(f"backup {source} is malformed: {exc}") from exc


def open_backup(
    envelope: BackupEnvelope,
    private_key: Optional[rsa.RSAPrivateKey] = None,
) -> dict[str, str]:
    """Recover the name -> value mapping from a backup.

    Raises:
        ConfigurationError: Encrypted backup but no private key given.
        AuthenticationError: Wrong private key, or tampered payload.
        FormatError: Payload is not a sealed mapping.
    """
    if not envelope.encrypted:
        if not isinstance(envelope.payload, dict):
            raise FormatError("cleartext backup payload must be a mapping")
        return dict(envelope.payload)

    if private_key is None:
        raise ConfigurationError("backup is encrypted; a private key is required")
    if not isinstance(envelope.payload, str):
        raise FormatError("encrypted backup payload must be base64 text")

    try:
        payload_key = private_key.decrypt(envelope.wrapped_key, _oaep())
    except ValueError as exc:
        raise AuthenticationError("backup key does not match this private key") from exc

    try:
        sealed = base64.b64decode(envelope.payload, validate=True)
    except binascii.Error as exc:
        raise FormatError(f"backup payload is not base64: {exc}") from exc

    data = cipher.decrypt(sealed, payload_key)
    try:
        items = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormatError(f"backup payload is not JSON: {exc}") from exc
    if not isinstance(items, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in items.items()
    ):
        raise FormatError("backup payload must map names to text values")
    return items


def restore_backup(
    backup: Union[BackupEnvelope, str, Path],
    destination: Backend,
    private_key: Optional[rsa.RSAPrivateKey] = None,
    suffix: str = RESTORE_SUFFIX,
) -> RestoreResult:
    """Put every backed-up secret into ``destination`` as ``<name><suffix>``.

    Not transactional: entries already put stay put if a later one
    fails, and running it twice appends duplicates on stores that do
    not reject existing names.

    Args:
        backup: An envelope or the path of a backup file.
        destination: Backend to restore into.
        private_key: Required for encrypted backups.
        suffix: Appended to every restored key name.

    Returns:
        RestoreResult: Counts plus (name, error) for each failed put.
    """
    envelope = backup if isinstance(backup, BackupEnvelope) else read_backup(backup)
    items = open_backup(envelope, private_key)

    result = RestoreResult(total=len(items))
    for name in sorted(items):
        target = f"{name}{suffix}"
        try:
            destination.put(target, items[name], overwrite=False)
        except RandomnessError:
            raise
        except Exception as exc:
            logger.warning("Restore of '%s' as '%s' failed: %s", name, target, exc)
            result.errors.append((name, str(exc)))
            continue
        result.restored += 1
        logger.debug("Restored '%s' as '%s'", name, target)

    logger.info(
        "Restored %d of %d secret(s) (%d error(s))",
        result.restored, result.total, len(result.errors),
    )
    return result
