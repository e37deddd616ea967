"""
Pydantic models for stored secrets, backups and profiles.

Field aliases keep the on-disk JSON in the capitalised layout that
existing store and backup files use (``Name``, ``KeyInfo``, ``Payload``).
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _b64decode(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid base64: {exc}") from exc
    return value


# Raw bytes in Python, standard base64 text in JSON.
B64Bytes = Annotated[
    bytes,
    BeforeValidator(_b64decode),
    PlainSerializer(
        lambda v: base64.b64encode(v).decode("ascii"), return_type=str, when_used="json"
    ),
]


class Key(BaseModel):
    """Metadata describing one stored secret. Never holds the value."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="CreatedAt"
    )
    owner: str = Field(default="", alias="Owner")
    info: str = Field(default="", alias="Info")


class SecretRecord(BaseModel):
    """An encrypted value plus its key metadata."""

    model_config = ConfigDict(populate_by_name=True)

    value: B64Bytes = Field(alias="Value")
    key_info: Key = Field(alias="KeyInfo")


class BackupEnvelope(BaseModel):
    """A portable snapshot of secrets.

    Attributes:
        payload: The name -> value mapping for cleartext backups, or the
            base64 text of the sealed serialised mapping for encrypted ones.
        wrapped_key: The payload key encrypted to the recipient's public
            key. ``None`` for cleartext backups.
    """

    model_config = ConfigDict(populate_by_name=True)

    payload: Union[dict[str, str], str] = Field(alias="Payload")
    wrapped_key: Optional[B64Bytes] = Field(default=None, alias="WrappedKey")

    @property
    def encrypted(self) -> bool:
        return self.wrapped_key is not None


class KeyPair(BaseModel):
    """PEM-encoded halves of a backup recipient key pair."""

    private_pem: str
    public_pem: str


class RestoreResult(BaseModel):
    """Outcome of a best-effort restore."""

    total: int = 0
    restored: int = 0
    errors: list[tuple[str, str]] = Field(default_factory=list)


class BackendType(str, Enum):
    """Backend kinds a profile may name.

    Only ``file`` ships with sksecrets; the others are served by
    external adapters implementing the Backend contract.
    """

    FILE = "file"
    GSM = "gsm"
    KMS = "kms"
    SSM = "ssm"
    AKV = "akv"
    VAULT = "vault"


class Profile(BaseModel):
    """One named target: which backend, and how to reach it."""

    name: str = ""
    backend: BackendType = BackendType.FILE
    project_id: str = ""
    location: Optional[Path] = None
    vault_url: Optional[str] = None
    vault_mount_path: str = "secret"
    secret_chars: Optional[str] = None


class SecretsConfig(BaseModel):
    """The whole config file: profiles keyed by name."""

    profiles: dict[str, Profile] = Field(default_factory=dict)
