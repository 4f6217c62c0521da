from __future__ import annotations
"""Pooled upload/download transfers with completion status."""
from concurrent.futures import Future, ThreadPoolExecutor, wait
import enum
import logging
import os
import threading
import time
from typing import Callable, Optional

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from .client import error_message
from .config import S3Conf
from .models import TransferResult

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/plain"


class TransferStatus(enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransferHandle:
    """Tracks one in-flight transfer running on the engine's executor."""

    def __init__(self, local_path: str, bucket: str, key: str):
        self.local_path = local_path
        self.bucket = bucket
        self.key = key
        self._future: Future | None = None
        self._lock = threading.Lock()
        self._transferred = 0
        self._started = time.perf_counter()
        self._finished: float | None = None
        self._error: Exception | None = None

    @property
    def status(self) -> TransferStatus:
        if self._future is None or not self._future.done():
            return TransferStatus.IN_PROGRESS
        return TransferStatus.FAILED if self.last_error is not None else TransferStatus.COMPLETED

    @property
    def last_error(self) -> Exception | None:
        if self._error is None and self._future is not None and self._future.done():
            return self._future.exception()
        return self._error

    @property
    def last_error_message(self) -> str:
        error = self.last_error
        return error_message(error) if error is not None else ""

    @property
    def bytes_transferred(self) -> int:
        return self._transferred

    @property
    def duration(self) -> float:
        end = self._finished if self._finished is not None else time.perf_counter()
        return end - self._started

    def wait_until_finished(self) -> TransferStatus:
        """Block until the transfer reaches COMPLETED or FAILED."""

        if self._future is not None:
            wait([self._future])
        return self.status

    def result(self) -> TransferResult:
        return TransferResult(
            local_path=self.local_path,
            bucket=self.bucket,
            key=self.key,
            size=self._transferred,
            duration=self.duration,
        )

    def _on_progress(self, amount: int) -> None:
        with self._lock:
            self._transferred += amount

    def _run(self, transfer: Callable[[Callable[[int], None]], None]) -> None:
        self._started = time.perf_counter()
        try:
            transfer(self._on_progress)
        except (BotoCoreError, ClientError, OSError) as exc:
            self._error = exc
        finally:
            self._finished = time.perf_counter()
        if self._error is None and os.path.exists(self.local_path):
            # progress callbacks are optional, the local file size is authoritative
            self._transferred = os.path.getsize(self.local_path)


class TransferEngine:
    """Runs uploads and downloads on a pooled executor.

    Each file is additionally split into parts by boto3's transfer manager
    according to the configured multipart threshold and chunk size.
    """

    def __init__(self, conf: S3Conf, executor: ThreadPoolExecutor | None = None):
        self._conf = conf
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=conf.executor_pool_size,
            thread_name_prefix=f"{conf.identifier or 's3'}-transfer",
        )

    def transfer_config(self) -> TransferConfig:
        return TransferConfig(
            multipart_threshold=self._conf.multipart_threshold,
            multipart_chunksize=self._conf.multipart_chunk_size,
            max_concurrency=self._conf.max_concurrency,
        )

    def upload_file(
        self,
        client,
        local_path: str,
        bucket: str,
        key: str,
        content_type: Optional[str] = DEFAULT_CONTENT_TYPE,
    ) -> TransferHandle:
        handle = TransferHandle(local_path, bucket, key)
        config = self.transfer_config()
        extra_args = {"ContentType": content_type} if content_type else None

        def _upload(callback: Callable[[int], None]) -> None:
            client.upload_file(local_path, bucket, key, Callback=callback, ExtraArgs=extra_args, Config=config)

        LOGGER.debug("Submitting upload of %s to bucket=%s, key=%s", local_path, bucket, key)
        handle._future = self._executor.submit(handle._run, _upload)
        return handle

    def download_file(self, client, bucket: str, key: str, local_path: str) -> TransferHandle:
        handle = TransferHandle(local_path, bucket, key)
        config = self.transfer_config()

        def _download(callback: Callable[[int], None]) -> None:
            client.download_file(bucket, key, local_path, Callback=callback, Config=config)

        LOGGER.debug("Submitting download of bucket=%s, key=%s to %s", bucket, key, local_path)
        handle._future = self._executor.submit(handle._run, _download)
        return handle

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
