"""Tests for backup snapshots, encrypted envelopes and restore."""

from __future__ import annotations

import base64
import json
import stat
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization

from sksecrets.backends.file import FileStore
from sksecrets.backup import (
    RESTORE_SUFFIX,
    collect_secrets,
    create_backup,
    open_backup,
    read_backup,
    restore_backup,
    seal_secrets,
    write_backup,
)
from sksecrets.errors import (
    AuthenticationError,
    ConfigurationError,
    FormatError,
    RandomnessError,
    StoreIOError,
)
from sksecrets.models import BackupEnvelope, KeyPair, Profile

from conftest import MemoryBackend


def _public(pair: KeyPair):
    return serialization.load_pem_public_key(pair.public_pem.encode("ascii"))


def _private(pair: KeyPair):
    return serialization.load_pem_private_key(pair.private_pem.encode("ascii"), password=None)


@pytest.fixture
def source() -> MemoryBackend:
    """A backend holding a and b."""
    backend = MemoryBackend(Profile(name="source"))
    backend.put("a", "1")
    backend.put("b", "2")
    return backend


@pytest.fixture
def destination() -> MemoryBackend:
    """An empty backend to restore into."""
    return MemoryBackend(Profile(name="destination"))


# ---------------------------------------------------------------------------
# Collecting secrets
# ---------------------------------------------------------------------------


class TestCollect:
    """Reading the secrets that go into a backup."""

    def test_collects_everything(self, source: MemoryBackend) -> None:
        """An empty filter matches every key."""
        assert collect_secrets(source) == {"a": "1", "b": "2"}

    def test_substring_filter(self, memory_backend: MemoryBackend) -> None:
        """Only names containing the filter are read."""
        for name in ("db-pass", "db-user", "api-token"):
            memory_backend.put(name, name.upper())
        assert collect_secrets(memory_backend, "db") == {"db-pass": "DB-PASS", "db-user": "DB-USER"}

    def test_duplicates_resolve_like_get(self, store: FileStore) -> None:
        """A name stored twice is backed up with its first value."""
        store.put("dup", "first")
        store.put("dup", "second")
        assert collect_secrets(store) == {"dup": "first"}

    def test_non_utf8_value_is_format_error(self) -> None:
        """Binary values cannot go into a text backup."""
        class BinaryBackend(MemoryBackend):
            def get(self, key: str) -> bytes:
                return b"\xff\xfe"

        backend = BinaryBackend()
        backend.put("bin", "placeholder")
        with pytest.raises(FormatError):
            collect_secrets(backend)


# ---------------------------------------------------------------------------
# Cleartext backups
# ---------------------------------------------------------------------------


class TestCleartextBackup:
    """Backups made without a recipient key."""

    def test_roundtrip(self, source: MemoryBackend, destination: MemoryBackend, tmp_path: Path) -> None:
        """Backup a and b, restore both with the suffix."""
        path = write_backup(create_backup(source), tmp_path / "plain.backup")
        result = restore_backup(path, destination)

        assert result.total == 2
        assert result.restored == 2
        assert result.errors == []
        assert destination.values == {"a_restore": "1", "b_restore": "2"}

    def test_file_layout(self, source: MemoryBackend, tmp_path: Path) -> None:
        """The file holds the mapping and a null wrapped key."""
        path = write_backup(create_backup(source), tmp_path / "plain.backup")
        data = json.loads(path.read_text())
        assert data == {"Payload": {"a": "1", "b": "2"}, "WrappedKey": None}

    def test_not_encrypted(self, source: MemoryBackend) -> None:
        """No key means no wrapped key."""
        envelope = create_backup(source)
        assert envelope.encrypted is False
        assert open_backup(envelope) == {"a": "1", "b": "2"}

    def test_empty_backup(self, destination: MemoryBackend) -> None:
        """Backing up an empty backend restores nothing."""
        result = restore_backup(create_backup(MemoryBackend()), destination)
        assert result.total == 0
        assert result.restored == 0
        assert destination.values == {}

    def test_written_owner_only(self, source: MemoryBackend, tmp_path: Path) -> None:
        """Backup files are created 0600."""
        path = write_backup(create_backup(source), tmp_path / "plain.backup")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_replaces_world_readable_file(self, source: MemoryBackend, tmp_path: Path) -> None:
        """An existing 0644 file at the target is replaced with a 0600 one."""
        target = tmp_path / "plain.backup"
        target.write_text("stale")
        target.chmod(0o644)
        path = write_backup(create_backup(source), target)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert json.loads(path.read_text())["Payload"] == {"a": "1", "b": "2"}

    def test_string_payload_without_key_is_format_error(self) -> None:
        """A cleartext backup must carry a mapping."""
        with pytest.raises(FormatError):
            open_backup(BackupEnvelope(payload="c2VhbGVk"))


# ---------------------------------------------------------------------------
# Encrypted backups
# ---------------------------------------------------------------------------


class TestEncryptedBackup:
    """Backups sealed to a recipient key pair."""

    def test_roundtrip(
        self, source: MemoryBackend, destination: MemoryBackend, key_pair: KeyPair, tmp_path: Path
    ) -> None:
        """Encrypted backup restores with the matching private key."""
        envelope = create_backup(source, public_key=_public(key_pair))
        path = write_backup(envelope, tmp_path / "sealed.backup")

        result = restore_backup(path, destination, private_key=_private(key_pair))

        assert result.restored == 2
        assert destination.values == {"a_restore": "1", "b_restore": "2"}

    def test_file_hides_values(self, source: MemoryBackend, key_pair: KeyPair, tmp_path: Path) -> None:
        """Neither names nor values appear in the written file."""
        source.put("db-pass", "s3cr3t")
        envelope = create_backup(source, public_key=_public(key_pair))
        text = write_backup(envelope, tmp_path / "sealed.backup").read_text()
        assert "s3cr3t" not in text
        assert "db-pass" not in text
        data = json.loads(text)
        assert isinstance(data["Payload"], str)
        assert isinstance(data["WrappedKey"], str)

    def test_wrapped_key_fits_modulus(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """The wrapped payload key is one RSA block."""
        envelope = create_backup(source, public_key=_public(key_pair))
        assert envelope.encrypted is True
        assert len(envelope.wrapped_key) == 3072 // 8

    def test_fresh_key_each_time(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """Two backups of the same data differ."""
        public_key = _public(key_pair)
        first = create_backup(source, public_key=public_key)
        second = create_backup(source, public_key=public_key)
        assert first.payload != second.payload
        assert first.wrapped_key != second.wrapped_key

    def test_filter_applies(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """Only filtered keys are sealed."""
        envelope = create_backup(source, filter="a", public_key=_public(key_pair))
        assert open_backup(envelope, _private(key_pair)) == {"a": "1"}

    def test_seal_secrets_directly(self, key_pair: KeyPair) -> None:
        """seal_secrets works on any mapping."""
        envelope = seal_secrets({"x": "ü"}, _public(key_pair))
        assert open_backup(envelope, _private(key_pair)) == {"x": "ü"}

    def test_unrelated_private_key(
        self, source: MemoryBackend, key_pair: KeyPair, other_key_pair: KeyPair
    ) -> None:
        """A different private key fails authentication."""
        envelope = create_backup(source, public_key=_public(key_pair))
        with pytest.raises(AuthenticationError):
            open_backup(envelope, _private(other_key_pair))

    def test_missing_private_key(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """Restoring an encrypted backup needs a key."""
        envelope = create_backup(source, public_key=_public(key_pair))
        with pytest.raises(ConfigurationError):
            restore_backup(envelope, MemoryBackend())

    def test_tampered_payload(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """A changed payload byte fails authentication."""
        envelope = create_backup(source, public_key=_public(key_pair))
        sealed = bytearray(base64.b64decode(envelope.payload))
        sealed[-1] ^= 0x80
        envelope.payload = base64.b64encode(bytes(sealed)).decode("ascii")
        with pytest.raises(AuthenticationError):
            open_backup(envelope, _private(key_pair))

    def test_tampered_wrapped_key(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """A changed wrapped key fails to unwrap."""
        envelope = create_backup(source, public_key=_public(key_pair))
        wrapped = bytearray(envelope.wrapped_key)
        wrapped[10] ^= 0x01
        envelope.wrapped_key = bytes(wrapped)
        with pytest.raises(AuthenticationError):
            open_backup(envelope, _private(key_pair))

    def test_payload_not_base64(self, source: MemoryBackend, key_pair: KeyPair) -> None:
        """A garbled payload is a format error."""
        envelope = create_backup(source, public_key=_public(key_pair))
        envelope.payload = "not base64!!"
        with pytest.raises(FormatError):
            open_backup(envelope, _private(key_pair))

    def test_mapping_payload_with_key_is_format_error(self, key_pair: KeyPair) -> None:
        """An encrypted envelope must carry sealed text."""
        envelope = BackupEnvelope(payload={"a": "1"}, wrapped_key=b"\x00" * 384)
        with pytest.raises(FormatError):
            open_backup(envelope, _private(key_pair))


# ---------------------------------------------------------------------------
# Reading backup files
# ---------------------------------------------------------------------------


class TestReadBackup:
    """Parsing backup documents from disk."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is an I/O error."""
        with pytest.raises(StoreIOError):
            read_backup(tmp_path / "absent.backup")

    @pytest.mark.parametrize("content", ["not json", "{}", '{"Payload": 5}', '{"Payload": {"a": 1}}'])
    def test_malformed_file(self, tmp_path: Path, content: str) -> None:
        """Anything but a backup document is a format error."""
        path = tmp_path / "bad.backup"
        path.write_text(content)
        with pytest.raises(FormatError):
            read_backup(path)

    def test_bad_wrapped_key_base64(self, tmp_path: Path) -> None:
        """A wrapped key that is not base64 is rejected."""
        path = tmp_path / "bad.backup"
        path.write_text('{"Payload": "abc", "WrappedKey": "%%%"}')
        with pytest.raises(FormatError):
            read_backup(path)


# ---------------------------------------------------------------------------
# Restore semantics
# ---------------------------------------------------------------------------


class TestRestore:
    """Best-effort restore behaviour."""

    def test_existing_target_is_reported(self, source: MemoryBackend, destination: MemoryBackend) -> None:
        """A put that fails is recorded and the rest continue."""
        destination.put("a_restore", "live")
        result = restore_backup(create_backup(source), destination)

        assert result.total == 2
        assert result.restored == 1
        assert [name for name, _ in result.errors] == ["a"]
        assert "a_restore" in result.errors[0][1]
        assert destination.values == {"a_restore": "live", "b_restore": "2"}

    def test_never_touches_live_names(self, source: MemoryBackend) -> None:
        """Restoring into the source leaves the originals alone."""
        restore_backup(create_backup(source), source)
        assert source.values == {"a": "1", "b": "2", "a_restore": "1", "b_restore": "2"}

    def test_custom_suffix(self, source: MemoryBackend, destination: MemoryBackend) -> None:
        """The restore suffix can be changed."""
        restore_backup(create_backup(source), destination, suffix="_old")
        assert set(destination.values) == {"a_old", "b_old"}

    def test_default_suffix(self) -> None:
        assert RESTORE_SUFFIX == "_restore"

    def test_twice_into_file_store_appends(self, source: MemoryBackend, store: FileStore) -> None:
        """A store that accepts duplicates gets both restores."""
        envelope = create_backup(source)
        restore_backup(envelope, store)
        restore_backup(envelope, store)
        names = [k.name for k in store.list()]
        assert names.count("a_restore") == 2
        assert store.get("b_restore") == b"2"

    def test_unexpected_error_recorded(self, source: MemoryBackend) -> None:
        """Backend failures of any kind are collected, not raised."""
        class FlakyBackend(MemoryBackend):
            def put(self, key: str, value: str, overwrite: bool = False) -> None:
                if key.startswith("a"):
                    raise RuntimeError("backend unavailable")
                super().put(key, value, overwrite)

        flaky = FlakyBackend()
        result = restore_backup(create_backup(source), flaky)
        assert result.errors == [("a", "backend unavailable")]
        assert flaky.values == {"b_restore": "2"}

    def test_randomness_failure_aborts(self, source: MemoryBackend) -> None:
        """A broken random source stops the restore."""
        class NoEntropyBackend(MemoryBackend):
            def put(self, key: str, value: str, overwrite: bool = False) -> None:
                raise RandomnessError("random source failed")

        with pytest.raises(RandomnessError):
            restore_backup(create_backup(source), NoEntropyBackend())
