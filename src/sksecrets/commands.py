"""
Backend-agnostic secret commands.

The CLI is a thin shell over these functions; each one takes the
backends it works on, so the same code drives a local store or any
external adapter.
"""

from __future__ import annotations

import logging
from typing import Optional

import jinja2

from .backends import Backend
from .errors import ConfigurationError, FormatError
from .models import Key

logger = logging.getLogger("sksecrets.commands")


def list_keys(backend: Backend, filter: str = "") -> list[Key]:
    """List keys whose name contains ``filter``, sorted by name.

    Duplicate names stay in the listing, in stored order.
    """
    keys = [k for k in backend.list() if filter in k.name]
    return sorted(keys, key=lambda k: k.name)


def put_secret(backend: Backend, key: str, value: str, overwrite: bool = False) -> None:
    """Store a value, passing the overwrite decision through to the backend."""
    backend.put(key, value, overwrite=overwrite)
    logger.info("Stored '%s'", key)


def move_secret(
    source: Backend,
    source_key: str,
    target: Backend,
    target_key: Optional[str] = None,
) -> str:
    """Move a secret between backends (or names).

    The value is read from ``source``, put into ``target`` without
    overwriting, and only then deleted from ``source``. If the put
    fails the source is left untouched.

    Returns:
        str: The key the value now lives under.
    """
    destination = target_key or source_key
    if source.profile == target.profile and destination == source_key:
        raise ConfigurationError(f"cannot move '{source_key}' onto itself")
    value = source.get(source_key)
    target.put(destination, value.decode("utf-8"), overwrite=False)
    source.delete(source_key)
    logger.info("Moved '%s' to '%s'", source_key, destination)
    return destination


def render_template(backend: Backend, source: str) -> str:
    """Render a Jinja2 template, filling in secrets from ``backend``.

    Inside the template ``secret("name")`` looks a key up with
    ``backend.get`` and yields its value as text:

        DATABASE_URL=postgres://app:{{ secret("db-pass") }}@db/app

    Undefined variables are errors, not empty strings. Output is not
    escaped.

    Raises:
        FormatError: If the template does not parse, uses an undefined
            name, or a looked-up value is not UTF-8 text.
        NotFoundError: If a referenced key is absent.
    """
    def secret(key: str) -> str:
        value = backend.get(key)
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError(f"value of '{key}' is not UTF-8 text") from exc

    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.globals["secret"] = secret
    try:
        rendered = env.from_string(source).render()
    except jinja2.TemplateError as exc:
        raise FormatError(f"template error: {exc}") from exc
    logger.info("Rendered template through profile '%s'", backend.profile.name)
    return rendered
