"""Shared test fixtures for sksecrets."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
import yaml

from sksecrets.backends import Backend
from sksecrets.backends.file import FileStore
from sksecrets.errors import AlreadyExistsError, NotFoundError
from sksecrets.keypair import generate_key_pair
from sksecrets.models import Key, KeyPair, Profile

PASSPHRASE = "hunter2"


class MemoryBackend(Backend):
    """Dict-backed backend that honours ``overwrite`` like a remote one."""

    def __init__(self, profile: Optional[Profile] = None, passphrase: Optional[str] = None):
        super().__init__(profile or Profile(name="memory"), passphrase)
        self.values: dict[str, str] = {}
        self.closed = False

    def get(self, key: str) -> bytes:
        if key not in self.values:
            raise NotFoundError(key)
        return self.values[key].encode("utf-8")

    def list(self) -> list[Key]:
        return [Key(name=name) for name in self.values]

    def check_exists(self, key: str) -> bool:
        return key in self.values

    def put(self, key: str, value: str, overwrite: bool = False) -> None:
        if not overwrite and key in self.values:
            raise AlreadyExistsError(key)
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def profile(tmp_path: Path) -> Profile:
    """A file-backend profile whose store lives in the test directory."""
    return Profile(name="test", project_id="test", location=tmp_path / "test.secrets.sksecrets")


@pytest.fixture
def store(profile: Profile) -> FileStore:
    """A file store unlocked with the test passphrase."""
    return FileStore(profile, passphrase=PASSPHRASE)


@pytest.fixture
def memory_backend() -> MemoryBackend:
    """An empty in-memory backend."""
    return MemoryBackend()


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    """A backup recipient key pair, generated once per run."""
    return generate_key_pair(3072)


@pytest.fixture(scope="session")
def other_key_pair() -> KeyPair:
    """A second, unrelated key pair."""
    return generate_key_pair(3072)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file with two file-backed profiles, dev and prod."""
    config = {
        "profiles": {
            "dev": {
                "backend": "file",
                "project_id": "dev-project",
                "location": str(tmp_path / "dev.secrets.sksecrets"),
            },
            "prod": {
                "backend": "file",
                "project_id": "prod-project",
                "location": str(tmp_path / "prod.secrets.sksecrets"),
                "secret_chars": "abc",
            },
            "cloud": {
                "backend": "gsm",
                "project_id": "cloud-project",
            },
        }
    }
    path = tmp_path / "sksecrets.yaml"
    path.write_text(yaml.dump(config, default_flow_style=False))
    return path
