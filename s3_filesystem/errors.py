from __future__ import annotations
"""Error types raised by the S3 file system adapter."""


class FileSystemError(RuntimeError):
    """Base class for every failure surfaced by :mod:`s3_filesystem`."""


class ClientNotInitializedError(FileSystemError):
    """Raised when an operation runs without a usable S3 client."""

    def __init__(self, message: str = "init s3 client error"):
        super().__init__(message)


class ConnectError(FileSystemError):
    """Raised when the S3 client cannot be constructed."""


class RemoteIOError(FileSystemError):
    """A non-success response from the remote store.

    Carries the endpoint, bucket and key (or listing prefix) the request was
    issued against together with the provider's message.
    """

    def __init__(
        self,
        action: str,
        *,
        endpoint: str,
        bucket: str,
        message: str,
        key: str | None = None,
        prefix: str | None = None,
    ):
        self.action = action
        self.endpoint = endpoint
        self.bucket = bucket
        self.key = key
        self.prefix = prefix
        self.message = message
        if prefix is not None:
            target = f"prefix={prefix}"
        else:
            target = f"key={key}"
        super().__init__(
            f"failed to {action}(endpoint={endpoint}, bucket={bucket}, {target}): {message}"
        )


class InvalidArgumentError(FileSystemError, ValueError):
    """Raised when an operation receives inconsistent arguments."""


class NotSupportedError(FileSystemError):
    """Raised for operations object stores have no concept of."""
