from __future__ import annotations
"""Construction and ownership of the shared S3 client."""
import logging
import threading
from typing import Callable

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import S3Conf
from .errors import ClientNotInitializedError, ConnectError

LOGGER = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def is_not_found(exc: Exception) -> bool:
    """Return True when ``exc`` is the provider's 404 answer."""

    if not isinstance(exc, ClientError):
        return False
    response = getattr(exc, "response", None) or {}
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    code = str(response.get("Error", {}).get("Code", ""))
    return status == 404 or code in NOT_FOUND_CODES


def error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        response = getattr(exc, "response", None) or {}
        message = response.get("Error", {}).get("Message")
        if message:
            return message
    return str(exc)


class ClientFactory:
    """Builds boto3 S3 clients from an :class:`S3Conf`."""

    def __init__(self, client_factory: Callable[..., object] | None = None):
        self._client_factory = client_factory or boto3.client

    def create(self, conf: S3Conf):
        config = Config(
            signature_version="s3v4",
            connect_timeout=conf.connect_timeout_ms / 1000,
            read_timeout=conf.request_timeout_ms / 1000,
            max_pool_connections=conf.max_connections,
        )
        kwargs = {
            "endpoint_url": conf.endpoint or None,
            "config": config,
        }
        if conf.access_key:
            kwargs["aws_access_key_id"] = conf.access_key
            kwargs["aws_secret_access_key"] = conf.secret_key
        if conf.region:
            kwargs["region_name"] = conf.region
        return self._client_factory("s3", **kwargs)


class ClientManager:
    """Owns the client slot shared by every operation of a file system.

    (Re)construction is serialized by a lock; readers take the current
    handle without locking.
    """

    def __init__(self, conf: S3Conf, factory: ClientFactory | None = None):
        self._conf = conf
        self._factory = factory or ClientFactory()
        self._lock = threading.Lock()
        self._client = None

    def connect(self) -> None:
        with self._lock:
            try:
                client = self._factory.create(self._conf)
            except (BotoCoreError, ClientError, ValueError) as exc:
                LOGGER.warning("Failed to init s3 client with %s: %s", self._conf.to_string(), exc)
                raise ConnectError(f"failed to init s3 client with {self._conf.to_string()}") from exc
            if client is None:
                raise ConnectError(f"failed to init s3 client with {self._conf.to_string()}")
            self._client = client
        LOGGER.info("Initialized s3 client, endpoint=%s, bucket=%s", self._conf.endpoint, self._conf.bucket)

    def get_client(self):
        return self._client

    def require_client(self):
        client = self._client
        if client is None:
            raise ClientNotInitializedError()
        return client
