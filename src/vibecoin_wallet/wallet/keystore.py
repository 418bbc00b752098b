"""Encrypted keystore file management.

A keystore is one JSON document on disk. Depending on its layout it holds
either a single wallet record (one wallet per installation) or a mapping
from identity to record (one wallet per user). Both layouts share the same
:class:`Keystore` handle; only identity resolution differs.

Writes are serialized per store file (an in-process lock plus an exclusive
``flock`` on a sidecar ``.lock`` file) and land atomically via
``os.replace``, so readers never need a lock.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from eth_account import Account
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from vibecoin_wallet.wallet.envelope import Envelope, seal
from vibecoin_wallet.wallet.errors import AlreadyExists, CorruptStore, StorageError

logger = logging.getLogger("vibecoin_wallet.wallet.keystore")

DEFAULT_IDENTITY = "default"

DIR_MODE = 0o700
FILE_MODE = 0o600


class KeystoreRecord(BaseModel):
    """One stored wallet: its address and the envelope sealing its key."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    address: str
    envelope: Envelope = Field(
        validation_alias=AliasChoices("envelope", "encryptedKey"),
    )
    created_at: str = Field(
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "envelope": self.envelope.to_dict(),
            "createdAt": self.created_at,
        }


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------


class SingleRecordLayout:
    """The whole file is one record; every identity resolves to the default."""

    name = "single"

    def resolve(self, identity: str | None) -> str:
        return DEFAULT_IDENTITY

    def get(self, doc: dict, identity: str) -> dict | None:
        return doc or None

    def put(self, doc: dict, identity: str, record: dict) -> dict:
        return record


class MappedLayout:
    """The file maps identity keys to records."""

    name = "multi"

    def resolve(self, identity: str | None) -> str:
        if identity is None or not str(identity).strip():
            return DEFAULT_IDENTITY
        return str(identity).strip()

    def get(self, doc: dict, identity: str) -> dict | None:
        return doc.get(identity)

    def put(self, doc: dict, identity: str, record: dict) -> dict:
        updated = dict(doc)
        updated[identity] = record
        return updated


LAYOUTS = {
    SingleRecordLayout.name: SingleRecordLayout,
    MappedLayout.name: MappedLayout,
}


def get_layout(name: str) -> SingleRecordLayout | MappedLayout:
    """Return a layout instance by name (``single`` or ``multi``)."""
    if name not in LAYOUTS:
        raise KeyError(f"Unknown keystore layout '{name}'. Available: {sorted(LAYOUTS)}")
    return LAYOUTS[name]()


# ---------------------------------------------------------------------------
# Write locks
# ---------------------------------------------------------------------------

_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _thread_lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


# ---------------------------------------------------------------------------
# Keystore
# ---------------------------------------------------------------------------


class Keystore:
    """Handle on one keystore file.

    Parameters
    ----------
    path:
        Location of the canonical store file.
    layout:
        ``"single"`` or ``"multi"`` (or a layout instance).
    legacy_path:
        Deprecated store location consulted by
        :meth:`migrate_legacy_if_present` (single layout only).
    """

    def __init__(
        self,
        path: Path,
        layout: str | SingleRecordLayout | MappedLayout = "single",
        legacy_path: Optional[Path] = None,
    ) -> None:
        self.path = Path(path).expanduser()
        self.layout = get_layout(layout) if isinstance(layout, str) else layout
        self.legacy_path = Path(legacy_path).expanduser() if legacy_path else None

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def resolve(self, identity: str | None) -> str:
        return self.layout.resolve(identity)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load(self, identity: str | None = None) -> KeystoreRecord | None:
        """Return the record for *identity*, or ``None`` if there is none."""
        key = self.resolve(identity)
        raw = self.layout.get(self._read_document(), key)
        if raw is None:
            return None
        try:
            return KeystoreRecord.model_validate(raw)
        except ValidationError as exc:
            raise CorruptStore(
                f"Keystore {self.path} has a malformed record for '{key}' "
                f"({exc.error_count()} validation errors)"
            ) from None

    def exists(self, identity: str | None = None) -> bool:
        return self.load(identity) is not None

    def identities(self) -> list[str]:
        """List identities with a stored record."""
        doc = self._read_document()
        if isinstance(self.layout, SingleRecordLayout):
            return [DEFAULT_IDENTITY] if doc else []
        return sorted(doc.keys())

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def create(self, identity: str | None, password: str) -> str:
        """Generate a new key, seal it under *password*, and store it.

        Returns the checksummed address of the new wallet.

        Raises
        ------
        AlreadyExists
            If *identity* already has a record. The stored record is left
            untouched.
        """
        key = self.resolve(identity)
        with self._write_lock():
            doc = self._read_document()
            if self.layout.get(doc, key) is not None:
                raise AlreadyExists(None if key == DEFAULT_IDENTITY else key)

            acct = Account.create()
            secret = bytearray(acct.key)
            try:
                envelope = seal(secret, password)
            finally:
                secret[:] = b"\x00" * len(secret)

            record = KeystoreRecord(
                address=acct.address,
                envelope=envelope,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self._write_document(self.layout.put(doc, key, record.to_dict()))

        logger.info(f"Wallet created for '{key}': {record.address}")
        return record.address

    def migrate_legacy_if_present(self) -> bool:
        """Move a store from its deprecated location to the canonical one.

        Only applies to the single-record layout. Does nothing when the
        canonical store already has content or there is no legacy file.
        Returns *True* if a migration happened.
        """
        if self.legacy_path is None or not isinstance(self.layout, SingleRecordLayout):
            return False
        if self.legacy_path.resolve() == self.path.resolve():
            return False

        with self._write_lock():
            if self._has_content(self.path):
                return False
            if not self.legacy_path.exists():
                return False

            try:
                raw = self.legacy_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise StorageError(f"Cannot read legacy keystore {self.legacy_path}: {exc}") from exc
            doc = self._parse(raw, self.legacy_path)
            if not doc:
                return False

            self._write_document(doc)
            try:
                self.legacy_path.unlink()
            except OSError as exc:
                raise StorageError(
                    f"Migrated keystore to {self.path} but could not remove "
                    f"{self.legacy_path}: {exc}"
                ) from exc

        logger.info(f"Migrated wallet from {self.legacy_path} to {self.path}")
        return True

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _ensure_dir(self) -> None:
        parent = self.path.parent
        if parent.exists():
            return
        try:
            parent.mkdir(parents=True, mode=DIR_MODE, exist_ok=True)
            os.chmod(parent, DIR_MODE)
        except OSError as exc:
            raise StorageError(f"Cannot create keystore directory {parent}: {exc}") from exc

    @staticmethod
    def _has_content(path: Path) -> bool:
        try:
            return path.exists() and path.stat().st_size > 0
        except OSError as exc:
            raise StorageError(f"Cannot stat {path}: {exc}") from exc

    @staticmethod
    def _parse(raw: str, path: Path) -> dict:
        if not raw.strip():
            return {}
        try:
            doc = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptStore(f"Keystore {path} is not valid JSON: {exc.msg} (line {exc.lineno})") from None
        if not isinstance(doc, dict):
            raise CorruptStore(f"Keystore {path} must contain a JSON object")
        return doc

    def _read_document(self) -> dict:
        self._ensure_dir()
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read keystore {self.path}: {exc}") from exc
        return self._parse(raw, self.path)

    def _write_document(self, doc: dict) -> None:
        self._ensure_dir()
        data = json.dumps(doc, indent=2)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                os.fchmod(fh.fileno(), FILE_MODE)
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise StorageError(f"Cannot write keystore {self.path}: {exc}") from exc

    @contextlib.contextmanager
    def _write_lock(self) -> Iterator[None]:
        """Serialize load-modify-save on this store across threads and processes."""
        self._ensure_dir()
        with _thread_lock_for(self.path):
            try:
                fh = open(self.lock_path, "a+")
            except OSError as exc:
                raise StorageError(f"Cannot open lock file {self.lock_path}: {exc}") from exc
            with fh:
                os.chmod(self.lock_path, FILE_MODE)
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
