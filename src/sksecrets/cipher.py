"""
Passphrase-based authenticated encryption for single values.

Every value is sealed independently:

    blob = salt (16) || nonce (24) || ciphertext-with-tag

The key is stretched from the passphrase with Argon2 using fixed cost
parameters, so the salt stored in the blob is all that is needed to
re-derive it. Sealing uses XChaCha20-Poly1305, whose 192-bit nonce is
large enough to be drawn at random for every record.

The Argon2i variant and the cost parameters match the stores written by
earlier releases; changing either makes existing stores unreadable.
"""

from __future__ import annotations

import os
from typing import Union

from argon2.low_level import Type, hash_secret_raw
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from .errors import AuthenticationError, FormatError, RandomnessError

SALT_SIZE = 16
NONCE_SIZE = 24
KEY_SIZE = 32
HEADER_SIZE = SALT_SIZE + NONCE_SIZE
TAG_SIZE = 16

KDF_TIME_COST = 3
KDF_MEMORY_COST = 32 * 1024  # KiB
KDF_PARALLELISM = 4

Passphrase = Union[str, bytes]


def random_bytes(length: int) -> bytes:
    """Read ``length`` bytes from the OS CSPRNG.

    Args:
        length: Number of bytes wanted.

    Returns:
        bytes: Exactly ``length`` random bytes.

    Raises:
        RandomnessError: If the source fails or comes up short. Callers
            must abort; there is no fallback.
    """
    try:
        data = os.urandom(length)
    except (OSError, NotImplementedError) as exc:
        raise RandomnessError(f"secure random source failed: {exc}") from exc
    if len(data) != length:
        raise RandomnessError(
            f"secure random source returned {len(data)} of {length} bytes"
        )
    return data


def _passphrase_bytes(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return bytes(passphrase)


def derive_key(passphrase: Passphrase, salt: bytes) -> bytes:
    """Stretch a passphrase into a 256-bit key.

    Args:
        passphrase: Text (UTF-8 encoded) or raw bytes.
        salt: 16-byte salt.

    Returns:
        bytes: 32-byte key.
    """
    return hash_secret_raw(
        secret=_passphrase_bytes(passphrase),
        salt=salt,
        time_cost=KDF_TIME_COST,
        memory_cost=KDF_MEMORY_COST,
        parallelism=KDF_PARALLELISM,
        hash_len=KEY_SIZE,
        type=Type.I,
    )


def encrypt(plaintext: bytes, passphrase: Passphrase) -> bytes:
    """Seal ``plaintext`` under a key derived from ``passphrase``.

    Returns:
        bytes: ``salt || nonce || ciphertext-with-tag``.
    """
    salt = random_bytes(SALT_SIZE)
    key = derive_key(passphrase, salt)
    nonce = random_bytes(NONCE_SIZE)
    sealed = crypto_aead_xchacha20poly1305_ietf_encrypt(plaintext, None, nonce, key)
    return salt + nonce + sealed


def decrypt(blob: bytes, passphrase: Passphrase) -> bytes:
    """Open a blob produced by :func:`encrypt`.

    Raises:
        FormatError: If the blob is shorter than salt + nonce.
        AuthenticationError: If the tag is missing or does not verify.
    """
    if len(blob) < HEADER_SIZE:
        raise FormatError("data has incorrect format")
    if len(blob) < HEADER_SIZE + TAG_SIZE:
        raise AuthenticationError("message authentication failed")

    salt = blob[:SALT_SIZE]
    nonce = blob[SALT_SIZE:HEADER_SIZE]
    key = derive_key(passphrase, salt)
    try:
        return crypto_aead_xchacha20poly1305_ietf_decrypt(
            blob[HEADER_SIZE:], None, nonce, key
        )
    except CryptoError as exc:
        raise AuthenticationError("message authentication failed") from exc
