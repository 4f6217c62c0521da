from __future__ import annotations
"""S3 configuration model and its JSON/keychain persistence."""
from dataclasses import asdict, dataclass, field, fields, replace
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import keyring
from keyring.errors import KeyringError

from .paths import normalize_prefix, normalize_root

LOGGER = logging.getLogger(__name__)

# Smallest part size S3 accepts for a multipart upload (5 MiB).
MIN_MULTIPART_CHUNK_SIZE = 5 * 1024 * 1024
DEFAULT_MULTIPART_THRESHOLD = 8 * 1024 * 1024
DEFAULT_MULTIPART_CHUNK_SIZE = 8 * 1024 * 1024
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_EXECUTOR_POOL_SIZE = 16
DEFAULT_MAX_CONNECTIONS = 50
DEFAULT_CONNECT_TIMEOUT_MS = 1000
DEFAULT_REQUEST_TIMEOUT_MS = 3000

_POSITIVE_DEFAULTS = {
    "executor_pool_size": DEFAULT_EXECUTOR_POOL_SIZE,
    "max_connections": DEFAULT_MAX_CONNECTIONS,
    "connect_timeout_ms": DEFAULT_CONNECT_TIMEOUT_MS,
    "request_timeout_ms": DEFAULT_REQUEST_TIMEOUT_MS,
    "multipart_threshold": DEFAULT_MULTIPART_THRESHOLD,
    "multipart_chunk_size": DEFAULT_MULTIPART_CHUNK_SIZE,
    "max_concurrency": DEFAULT_MAX_CONCURRENCY,
}


def _sanitize_positive(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number


@dataclass(frozen=True)
class S3Conf:
    """Connection and layout settings for one S3 file system."""

    endpoint: str
    bucket: str
    prefix: str = ""
    identifier: str = ""
    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    region: str = ""
    root_path: str = ""
    executor_pool_size: int = DEFAULT_EXECUTOR_POOL_SIZE
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD
    multipart_chunk_size: int = DEFAULT_MULTIPART_CHUNK_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def __post_init__(self) -> None:
        # frozen: normalized values are written through object.__setattr__
        prefix = normalize_prefix(self.prefix or "")
        object.__setattr__(self, "prefix", prefix)
        root = self.root_path or f"{self.endpoint}/{self.bucket}/{prefix}"
        object.__setattr__(self, "root_path", normalize_root(root))
        for name, default in _POSITIVE_DEFAULTS.items():
            object.__setattr__(self, name, _sanitize_positive(getattr(self, name), default))
        if self.multipart_chunk_size < MIN_MULTIPART_CHUNK_SIZE:
            object.__setattr__(self, "multipart_chunk_size", MIN_MULTIPART_CHUNK_SIZE)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "S3Conf":
        known = {f.name for f in fields(cls)}
        values = {name: value for name, value in data.items() if name in known}
        return cls(**values)

    def with_secret(self, secret_key: str) -> "S3Conf":
        return replace(self, secret_key=secret_key)

    def to_string(self) -> str:
        return (
            f"(endpoint={self.endpoint}, bucket={self.bucket}, prefix={self.prefix}, "
            f"region={self.region}, ak={self.access_key})"
        )


class KeychainStore:
    """Secret keys in the OS keychain, stored under ``identifier@endpoint``."""

    def __init__(self, service_name: str = "s3_filesystem"):
        self._service_name = service_name

    @staticmethod
    def account(conf: S3Conf) -> str:
        return f"{conf.identifier}@{conf.endpoint}"

    def lookup(self, conf: S3Conf) -> str:
        if not conf.identifier:
            return ""
        try:
            return keyring.get_password(self._service_name, self.account(conf)) or ""
        except KeyringError as exc:
            LOGGER.warning("Unable to read secret for %s from keychain: %s", self.account(conf), exc)
            return ""

    def store(self, conf: S3Conf) -> None:
        """Persist ``conf.secret_key``; an empty secret removes the entry."""

        if not conf.identifier:
            return
        if not conf.secret_key:
            self.forget(conf)
            return
        try:
            keyring.set_password(self._service_name, self.account(conf), conf.secret_key)
        except KeyringError as exc:
            LOGGER.warning("Unable to store secret for %s in keychain: %s", self.account(conf), exc)

    def forget(self, conf: S3Conf) -> None:
        if not conf.identifier:
            return
        try:
            keyring.delete_password(self._service_name, self.account(conf))
        except KeyringError:
            LOGGER.debug("No keychain entry to delete for %s", self.account(conf))


class ConfStorage:
    """JSON-backed store of named :class:`S3Conf` entries.

    Secret keys never stay in the JSON file; they are kept in the OS keychain
    under the configuration's endpoint and identifier.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_filesystem.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> dict[str, S3Conf]:
        confs: dict[str, S3Conf] = {}
        sanitized: list[dict[str, Any]] = []
        saw_plaintext = False
        for conf in self._read_entries():
            if conf.secret_key:
                saw_plaintext = True
                self._keychain.store(conf)
            else:
                conf = conf.with_secret(self._keychain.lookup(conf))
            confs[conf.identifier] = conf
            sanitized.append(self._serialize(conf))
        if saw_plaintext:
            self._write_data(sanitized)
        return confs

    def get(self, identifier: str) -> S3Conf:
        try:
            return self.load()[identifier]
        except KeyError:
            raise ValueError(f"Configuration '{identifier}' does not exist") from None

    def save(self, confs: list[S3Conf]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        current = {self._keychain.account(conf) for conf in confs}
        for stale in self._read_entries():
            if self._keychain.account(stale) not in current:
                self._keychain.forget(stale)
        for conf in confs:
            self._keychain.store(conf)
        self._write_data([self._serialize(conf) for conf in confs])

    @staticmethod
    def _serialize(conf: S3Conf) -> dict[str, Any]:
        payload = asdict(conf)
        payload.pop("secret_key", None)
        return payload

    def _read_entries(self) -> list[S3Conf]:
        """Parse the stored entries, skipping ones without identifier or bucket."""

        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable configuration file %s", self._path)
            return []
        entries = []
        for entry in data:
            try:
                if not entry["identifier"]:
                    continue
                entries.append(S3Conf.from_mapping(entry))
            except (KeyError, TypeError):
                continue
        return entries

    def _write_data(self, data: list[dict[str, Any]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
