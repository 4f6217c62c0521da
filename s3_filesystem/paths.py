from __future__ import annotations
"""Mapping between virtual file system paths and object keys."""
import os
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]


def normalize_prefix(prefix: str) -> str:
    """Strip one leading and one trailing slash from ``prefix``."""

    if prefix.startswith("/"):
        prefix = prefix[1:]
    if prefix.endswith("/"):
        prefix = prefix[:-1]
    return prefix


def normalize_root(root: str) -> str:
    if root and not root.endswith("/"):
        root += "/"
    return root


def get_key(prefix: str, root: str, path: PathLike) -> str:
    """Return the object key for ``path``.

    Paths under ``root`` lose exactly ``len(root)`` leading characters and the
    root itself, with or without its trailing slash, maps to ``prefix + "/"``.
    Any other path is taken as relative to the prefix. No further slash
    normalization happens.
    """

    text = os.fspath(path)
    if root and text == root.rstrip("/"):
        return f"{prefix}/"
    if root and text.startswith(root):
        return f"{prefix}/{text[len(root):]}"
    return f"{prefix}/{text}"


def listing_prefix(key: str) -> str:
    """Turn a key into a prefix that only matches entries below it."""

    if key and not key.endswith("/"):
        key += "/"
    return key


def strip_listing_prefix(key: str, prefix: str) -> str:
    return key[len(prefix):] if key.startswith(prefix) else key
