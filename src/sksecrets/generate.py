"""Random secret generation for the ``generate`` command."""

from __future__ import annotations

import secrets
import string
from typing import Optional

DEFAULT_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*()-_=+[]{}<>?"


def generate_secret(length: int, alphabet: Optional[str] = None) -> str:
    """Draw ``length`` characters uniformly from ``alphabet``.

    Args:
        length: Number of characters, at least 1.
        alphabet: Characters to choose from. Defaults to letters, digits
            and common punctuation.

    Returns:
        str: The generated secret.
    """
    if length < 1:
        raise ValueError(f"secret length must be at least 1, got {length}")
    chars = alphabet or DEFAULT_ALPHABET
    return "".join(secrets.choice(chars) for _ in range(length))
