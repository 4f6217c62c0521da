from __future__ import annotations
"""File handles bound to a single object key."""
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .client import ClientManager, error_message
from .config import S3Conf
from .errors import FileSystemError, RemoteIOError

LOGGER = logging.getLogger(__name__)


class S3FileReader:
    """Random-access reader over one object using ranged GETs."""

    def __init__(self, path: str, size: int, key: str, bucket: str, clients: ClientManager, conf: S3Conf):
        self.path = path
        self.size = size
        self.key = key
        self.bucket = bucket
        self._clients = clients
        self._conf = conf
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_at(self, offset: int, nbytes: int) -> bytes:
        if self._closed:
            raise FileSystemError(f"reader for {self.path} is closed")
        if offset < 0 or nbytes < 0:
            raise ValueError("offset and nbytes must not be negative")
        if offset >= self.size or nbytes == 0:
            return b""
        end = min(offset + nbytes, self.size) - 1
        client = self._clients.require_client()
        try:
            response = client.get_object(Bucket=self.bucket, Key=self.key, Range=f"bytes={offset}-{end}")
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise RemoteIOError(
                "read object",
                endpoint=self._conf.endpoint,
                bucket=self.bucket,
                key=self.key,
                message=error_message(exc),
            ) from exc

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "S3FileReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class S3FileWriter:
    """Buffered writer that switches to a multipart upload for large files.

    Nothing is sent until the buffer fills or the writer is closed.
    """

    def __init__(self, key: str, clients: ClientManager, conf: S3Conf):
        self.key = key
        self._clients = clients
        self._conf = conf
        self._buffer = bytearray()
        self._upload_id: str | None = None
        self._parts: list[dict[str, object]] = []
        self._bytes_appended = 0
        self._closed = False

    @property
    def bytes_appended(self) -> int:
        return self._bytes_appended

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, data: bytes) -> None:
        if self._closed:
            raise FileSystemError(f"writer for {self.key} is closed")
        self._buffer.extend(data)
        self._bytes_appended += len(data)
        while len(self._buffer) >= self._conf.multipart_chunk_size:
            chunk = bytes(self._buffer[: self._conf.multipart_chunk_size])
            del self._buffer[: self._conf.multipart_chunk_size]
            self._upload_part(chunk)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        client = self._clients.require_client()
        try:
            if self._upload_id is None:
                client.put_object(Bucket=self._conf.bucket, Key=self.key, Body=bytes(self._buffer))
            else:
                if self._buffer:
                    self._upload_part(bytes(self._buffer))
                client.complete_multipart_upload(
                    Bucket=self._conf.bucket,
                    Key=self.key,
                    UploadId=self._upload_id,
                    MultipartUpload={"Parts": self._parts},
                )
        except (BotoCoreError, ClientError) as exc:
            self._abort(client)
            raise self._remote_error("close file", exc) from exc
        finally:
            self._buffer.clear()
        LOGGER.debug("Closed s3 writer, bucket=%s, key=%s, size=%d", self._conf.bucket, self.key, self._bytes_appended)

    def _upload_part(self, chunk: bytes) -> None:
        client = self._clients.require_client()
        try:
            if self._upload_id is None:
                response = client.create_multipart_upload(Bucket=self._conf.bucket, Key=self.key)
                self._upload_id = response["UploadId"]
            part_number = len(self._parts) + 1
            response = client.upload_part(
                Bucket=self._conf.bucket,
                Key=self.key,
                UploadId=self._upload_id,
                PartNumber=part_number,
                Body=chunk,
            )
        except (BotoCoreError, ClientError) as exc:
            self._closed = True
            self._abort(client)
            raise self._remote_error("upload part", exc) from exc
        self._parts.append({"PartNumber": part_number, "ETag": response["ETag"]})

    def _abort(self, client) -> None:
        if self._upload_id is None:
            return
        try:
            client.abort_multipart_upload(Bucket=self._conf.bucket, Key=self.key, UploadId=self._upload_id)
        except (BotoCoreError, ClientError) as exc:
            LOGGER.warning("Failed to abort multipart upload %s for key %s: %s", self._upload_id, self.key, exc)

    def _remote_error(self, action: str, exc: Exception) -> RemoteIOError:
        return RemoteIOError(
            action,
            endpoint=self._conf.endpoint,
            bucket=self._conf.bucket,
            key=self.key,
            message=error_message(exc),
        )

    def discard(self) -> None:
        """Drop buffered data and abort any started upload without committing."""

        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        client = self._clients.get_client()
        if client is not None:
            self._abort(client)
        LOGGER.debug("Discarded s3 writer, bucket=%s, key=%s", self._conf.bucket, self.key)

    def __enter__(self) -> "S3FileWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discard()
        else:
            self.close()
