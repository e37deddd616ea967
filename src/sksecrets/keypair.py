"""
Backup recipient key pairs.

An RSA key pair whose public half wraps the payload key of encrypted
backups. There is no expiry, rotation or revocation: losing the private
half strands every backup made for its public half, and leaking it
exposes all of them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ._files import write_atomic
from .errors import ConfigurationError, FormatError, StoreIOError
from .models import KeyPair

logger = logging.getLogger("sksecrets.keypair")

DEFAULT_KEY_BITS = 4096
MIN_KEY_BITS = 3072
PUBLIC_KEY_SUFFIX = "_pub"
DEFAULT_KEY_NAME = "sksecrets_backupkey_rsa"


def generate_key_pair(bits: int = DEFAULT_KEY_BITS) -> KeyPair:
    """Generate a fresh RSA key pair and export both halves as PEM.

    Args:
        bits: Modulus size. Anything below 3072 is refused.

    Returns:
        KeyPair: PKCS8 private PEM and SubjectPublicKeyInfo public PEM.
    """
    if bits < MIN_KEY_BITS:
        raise ValueError(f"RSA keys must be at least {MIN_KEY_BITS} bits, got {bits}")

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return KeyPair(private_pem=private_pem, public_pem=public_pem)


def _write_text(path: Path, text: str, mode: int) -> None:
    try:
        write_atomic(path, text.encode("ascii"), mode)
    except OSError as exc:
        raise StoreIOError(f"cannot write key file {path}: {exc}") from exc


def save_key_pair(
    pair: KeyPair, path: str | Path = DEFAULT_KEY_NAME, force: bool = False
) -> tuple[Path, Path]:
    """Write both halves next to each other.

    Both files are replaced atomically with their final mode, so an old
    world-readable file at ``path`` never keeps its permissions.

    Args:
        pair: The key pair to persist.
        path: Private key path; the public key goes to ``<path>_pub``.
        force: Replace an existing private key. Backups made for the
            old public key can no longer be restored afterwards.

    Returns:
        tuple[Path, Path]: (private_path, public_path).

    Raises:
        ConfigurationError: If a private key exists at ``path`` and
            ``force`` is false.
    """
    private_path = Path(path).expanduser()
    public_path = private_path.with_name(private_path.name + PUBLIC_KEY_SUFFIX)
    if private_path.exists() and not force:
        raise ConfigurationError(
            f"a key already exists at {private_path}; refusing to replace it"
        )

    _write_text(public_path, pair.public_pem, 0o644)
    _write_text(private_path, pair.private_pem, 0o600)

    logger.info("Key pair saved: %s, %s", private_path, public_path)
    return private_path, public_path


def _read_pem(path: str | Path) -> bytes:
    try:
        return Path(path).expanduser().read_bytes()
    except OSError as exc:
        raise StoreIOError(f"cannot read key file {path}: {exc}") from exc


def load_public_key(path: str | Path) -> rsa.RSAPublicKey:
    """Load a PEM public key for wrapping backup keys."""
    try:
        key = serialization.load_pem_public_key(_read_pem(path))
    except ValueError as exc:
        raise FormatError(f"{path} is not a PEM public key: {exc}") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise FormatError(f"{path} is not an RSA public key")
    return key


def load_private_key(path: str | Path) -> rsa.RSAPrivateKey:
    """Load an unencrypted PEM private key for unwrapping backup keys."""
    try:
        key = serialization.load_pem_private_key(_read_pem(path), password=None)
    except (ValueError, TypeError) as exc:
        raise FormatError(f"{path} is not an unencrypted PEM private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise FormatError(f"{path} is not an RSA private key")
    return key
