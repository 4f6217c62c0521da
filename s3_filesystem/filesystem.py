from __future__ import annotations
"""File system operations backed by an S3-compatible object store."""
import logging
import os
from typing import Iterator, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .client import ClientFactory, ClientManager, error_message, is_not_found
from .config import S3Conf
from .dispatch import DispatchBridge, S3_FS_TYPE
from .errors import InvalidArgumentError, NotSupportedError, RemoteIOError
from .file_io import S3FileReader, S3FileWriter
from .models import ListPage, ObjectDetails, TransferResult
from .paths import PathLike, get_key, listing_prefix
from .transfer import TransferEngine, TransferHandle, TransferStatus
from .utils import format_size, format_throughput

LOGGER = logging.getLogger(__name__)

# DeleteObjects accepts at most 1000 keys per request.
MAX_DELETE_BATCH = 1000
MAX_LIST_KEYS = 1000


class S3FileSystem:
    """Generic file operations translated into S3 requests.

    Every public method runs through the :class:`DispatchBridge`, fetches the
    shared client once and raises a :class:`~s3_filesystem.errors.FileSystemError`
    subclass on failure.
    """

    def __init__(
        self,
        conf: S3Conf,
        *,
        client_factory: ClientFactory | None = None,
        bridge: DispatchBridge | None = None,
        transfer_engine: TransferEngine | None = None,
    ):
        self._conf = conf
        self._clients = ClientManager(conf, client_factory)
        self._bridge = bridge or DispatchBridge(S3_FS_TYPE)
        self._transfers = transfer_engine or TransferEngine(conf)

    @classmethod
    def create(cls, conf: S3Conf, **kwargs) -> "S3FileSystem":
        """Build a file system and connect its client."""

        fs = cls(conf, **kwargs)
        fs.connect()
        return fs

    @property
    def conf(self) -> S3Conf:
        return self._conf

    @property
    def bridge(self) -> DispatchBridge:
        return self._bridge

    @property
    def root_path(self) -> str:
        return self._conf.root_path

    def get_key(self, path: PathLike) -> str:
        return get_key(self._conf.prefix, self._conf.root_path, path)

    def get_client(self):
        return self._clients.get_client()

    def connect(self) -> None:
        self._bridge.execute(self._clients.connect)

    def close(self) -> None:
        self._transfers.shutdown()

    # -- single object operations -------------------------------------------------

    def upload(self, local_path: PathLike, dest_path: PathLike) -> TransferResult:
        return self._bridge.execute(self._upload_impl, local_path, dest_path)

    def _upload_impl(self, local_path: PathLike, dest_path: PathLike) -> TransferResult:
        client = self._clients.require_client()
        key = self.get_key(dest_path)
        handle = self._transfers.upload_file(client, os.fspath(local_path), self._conf.bucket, key)
        if handle.wait_until_finished() != TransferStatus.COMPLETED:
            raise self._remote_error("upload", handle.last_error_message, key=key) from handle.last_error
        result = handle.result()
        LOGGER.info(
            "Upload %s to s3, endpoint=%s, bucket=%s, key=%s, duration=%.3fs, capacity=%s, tp=%s",
            result.local_path,
            self._conf.endpoint,
            self._conf.bucket,
            key,
            result.duration,
            format_size(result.size),
            format_throughput(result.throughput),
        )
        return result

    def download(self, path: PathLike, local_path: PathLike) -> TransferResult:
        return self._bridge.execute(self._download_impl, path, local_path)

    def _download_impl(self, path: PathLike, local_path: PathLike) -> TransferResult:
        client = self._clients.require_client()
        key = self.get_key(path)
        handle = self._transfers.download_file(client, self._conf.bucket, key, os.fspath(local_path))
        if handle.wait_until_finished() != TransferStatus.COMPLETED:
            raise self._remote_error("download", handle.last_error_message, key=key) from handle.last_error
        result = handle.result()
        LOGGER.info(
            "Download %s from s3, endpoint=%s, bucket=%s, duration=%.3fs, capacity=%s, tp=%s",
            key,
            self._conf.endpoint,
            self._conf.bucket,
            result.duration,
            format_size(result.size),
            format_throughput(result.throughput),
        )
        return result

    def direct_upload(self, path: PathLike, content: bytes) -> None:
        self._bridge.execute(self._direct_upload_impl, path, content)

    def _direct_upload_impl(self, path: PathLike, content: bytes) -> None:
        client = self._clients.require_client()
        key = self.get_key(path)
        try:
            client.put_object(Bucket=self._conf.bucket, Key=key, Body=content)
        except (BotoCoreError, ClientError) as exc:
            raise self._remote_error("put object", error_message(exc), key=key) from exc

    def create_file(self, path: PathLike) -> S3FileWriter:
        return self._bridge.execute(self._create_file_impl, path)

    def _create_file_impl(self, path: PathLike) -> S3FileWriter:
        return S3FileWriter(self.get_key(path), self._clients, self._conf)

    def open_file(self, path: PathLike) -> S3FileReader:
        return self._bridge.execute(self._open_file_impl, path)

    def _open_file_impl(self, path: PathLike) -> S3FileReader:
        size = self._file_size_impl(path)
        key = self.get_key(path)
        fs_path = f"{self._conf.endpoint}/{self._conf.bucket}/{key}"
        return S3FileReader(fs_path, size, key, self._conf.bucket, self._clients, self._conf)

    def delete_file(self, path: PathLike) -> None:
        self._bridge.execute(self._delete_file_impl, path)

    def _delete_file_impl(self, path: PathLike) -> None:
        client = self._clients.require_client()
        key = self.get_key(path)
        try:
            client.delete_object(Bucket=self._conf.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            if is_not_found(exc):
                return
            raise self._remote_error("delete object", error_message(exc), key=key) from exc

    def exists(self, path: PathLike) -> bool:
        return self._bridge.execute(self._exists_impl, path)

    def _exists_impl(self, path: PathLike) -> bool:
        client = self._clients.require_client()
        key = self.get_key(path)
        try:
            client.head_object(Bucket=self._conf.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            if is_not_found(exc):
                return False
            raise self._remote_error("get object head", error_message(exc), key=key) from exc
        return True

    def file_size(self, path: PathLike) -> int:
        return self._bridge.execute(self._file_size_impl, path)

    def _file_size_impl(self, path: PathLike) -> int:
        return self._head_impl(path, action="get object size").size

    def get_object_details(self, path: PathLike) -> ObjectDetails:
        return self._bridge.execute(self._head_impl, path)

    def _head_impl(self, path: PathLike, action: str = "get object head") -> ObjectDetails:
        client = self._clients.require_client()
        key = self.get_key(path)
        try:
            response = client.head_object(Bucket=self._conf.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise self._remote_error(action, error_message(exc), key=key) from exc
        return ObjectDetails(
            bucket=self._conf.bucket,
            key=key,
            size=int(response.get("ContentLength") or 0),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def create_directory(self, path: PathLike) -> None:
        # object stores have no directory entities
        return None

    def link_file(self, src: PathLike, dest: PathLike) -> None:
        raise NotSupportedError("not support")

    # -- batch and paginated operations --------------------------------------

    def batch_upload(self, local_paths: Sequence[PathLike], dest_paths: Sequence[PathLike]) -> list[TransferResult]:
        return self._bridge.execute(self._batch_upload_impl, local_paths, dest_paths)

    def _batch_upload_impl(
        self, local_paths: Sequence[PathLike], dest_paths: Sequence[PathLike]
    ) -> list[TransferResult]:
        client = self._clients.require_client()
        if len(local_paths) != len(dest_paths):
            raise InvalidArgumentError("local_paths.size() != dest_paths.size()")

        handles: list[TransferHandle] = []
        for local_path, dest_path in zip(local_paths, dest_paths):
            key = self.get_key(dest_path)
            LOGGER.info(
                "Start to upload %s to s3, endpoint=%s, bucket=%s, key=%s",
                os.fspath(local_path),
                self._conf.endpoint,
                self._conf.bucket,
                key,
            )
            handles.append(self._transfers.upload_file(client, os.fspath(local_path), self._conf.bucket, key))

        failed: TransferHandle | None = None
        for handle in handles:
            if handle.wait_until_finished() != TransferStatus.COMPLETED and failed is None:
                failed = handle
        if failed is not None:
            raise self._remote_error("upload", failed.last_error_message, key=failed.key) from failed.last_error
        return [handle.result() for handle in handles]

    def iter_pages(self, path: PathLike, continuation_token: Optional[str] = None) -> Iterator[ListPage]:
        """Yield the listing of ``path`` page by page.

        Iteration is lazy; a caller that stopped early can resume from the
        ``next_continuation_token`` of the last page it saw.
        """

        return self._iter_pages(self._clients.require_client(), path, continuation_token)

    def _iter_pages(self, client, path: PathLike, continuation_token: Optional[str]) -> Iterator[ListPage]:
        prefix = listing_prefix(self.get_key(path))
        token = continuation_token
        number = 1
        while True:
            params = {"Bucket": self._conf.bucket, "Prefix": prefix, "MaxKeys": MAX_LIST_KEYS}
            if token:
                params["ContinuationToken"] = token
            try:
                response = client.list_objects_v2(**params)
            except (BotoCoreError, ClientError) as exc:
                raise self._remote_error("list objects", error_message(exc), prefix=prefix) from exc
            next_token = response.get("NextContinuationToken")
            page = ListPage(
                number=number,
                prefix=prefix,
                keys=[obj["Key"] for obj in response.get("Contents", [])],
                is_truncated=bool(response.get("IsTruncated", False)),
                continuation_token=token,
                next_continuation_token=next_token,
            )
            LOGGER.debug("Listed page %d with %d keys under prefix %s", number, len(page.keys), prefix)
            yield page
            if not page.is_truncated or not next_token:
                return
            token = next_token
            number += 1

    def list(self, path: PathLike, files: list[str] | None = None) -> list[str]:
        """Return the keys below ``path`` relative to it, appended to ``files``."""

        return self._bridge.execute(self._list_impl, path, files)

    def _list_impl(self, path: PathLike, files: list[str] | None) -> list[str]:
        client = self._clients.require_client()
        if files is None:
            files = []
        for page in self._iter_pages(client, path, None):
            files.extend(page.relative_keys())
        return files

    def delete_directory(self, path: PathLike) -> None:
        self._bridge.execute(self._delete_directory_impl, path)

    def _delete_directory_impl(self, path: PathLike) -> None:
        client = self._clients.require_client()
        for page in self._iter_pages(client, path, None):
            if not page.keys:
                continue
            self._delete_chunk(client, page.keys, prefix=page.prefix)
            LOGGER.debug(
                "Deleted %d s3 objects, endpoint=%s, bucket=%s, prefix=%s",
                len(page.keys),
                self._conf.endpoint,
                self._conf.bucket,
                page.prefix,
            )

    def batch_delete(self, paths: Sequence[PathLike]) -> None:
        self._bridge.execute(self._batch_delete_impl, paths)

    def _batch_delete_impl(self, paths: Sequence[PathLike]) -> None:
        client = self._clients.require_client()
        keys = [self.get_key(path) for path in paths]
        for start in range(0, len(keys), MAX_DELETE_BATCH):
            chunk = keys[start:start + MAX_DELETE_BATCH]
            LOGGER.debug("Deleting chunk of %d s3 objects starting at %s", len(chunk), chunk[0])
            self._delete_chunk(client, chunk)

    def _delete_chunk(self, client, keys: list[str], prefix: str | None = None) -> None:
        """Issue one quiet DeleteObjects call; abort on any per-key error."""

        request = {"Objects": [{"Key": key} for key in keys], "Quiet": True}
        try:
            response = client.delete_objects(Bucket=self._conf.bucket, Delete=request)
        except (BotoCoreError, ClientError) as exc:
            if prefix is not None:
                raise self._remote_error("delete objects", error_message(exc), prefix=prefix) from exc
            raise self._remote_error("delete objects", error_message(exc), key=keys[0]) from exc
        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            raise self._remote_error(
                "delete object",
                first.get("Message") or first.get("Code") or "unknown error",
                key=first.get("Key", ""),
            )

    def _remote_error(self, action: str, message: str, *, key: str | None = None, prefix: str | None = None):
        return RemoteIOError(
            action,
            endpoint=self._conf.endpoint,
            bucket=self._conf.bucket,
            key=key,
            prefix=prefix,
            message=message,
        )
