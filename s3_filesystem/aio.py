from __future__ import annotations
"""asyncio facade over :class:`S3FileSystem`.

Each coroutine hands the blocking call to the file system's worker pool and
suspends until it finishes, so other tasks on the loop keep running.
"""
from typing import Optional, Sequence

from .file_io import S3FileReader, S3FileWriter
from .filesystem import S3FileSystem
from .models import ListPage, ObjectDetails, TransferResult
from .paths import PathLike


class AsyncS3FileSystem:
    def __init__(self, fs: S3FileSystem):
        self._fs = fs
        self._bridge = fs.bridge

    def get_key(self, path: PathLike) -> str:
        return self._fs.get_key(path)

    async def connect(self) -> None:
        await self._bridge.run(self._fs.connect)

    async def upload(self, local_path: PathLike, dest_path: PathLike) -> TransferResult:
        return await self._bridge.run(self._fs.upload, local_path, dest_path)

    async def batch_upload(
        self, local_paths: Sequence[PathLike], dest_paths: Sequence[PathLike]
    ) -> list[TransferResult]:
        return await self._bridge.run(self._fs.batch_upload, local_paths, dest_paths)

    async def download(self, path: PathLike, local_path: PathLike) -> TransferResult:
        return await self._bridge.run(self._fs.download, path, local_path)

    async def direct_upload(self, path: PathLike, content: bytes) -> None:
        await self._bridge.run(self._fs.direct_upload, path, content)

    async def create_file(self, path: PathLike) -> S3FileWriter:
        return await self._bridge.run(self._fs.create_file, path)

    async def open_file(self, path: PathLike) -> S3FileReader:
        return await self._bridge.run(self._fs.open_file, path)

    async def delete_file(self, path: PathLike) -> None:
        await self._bridge.run(self._fs.delete_file, path)

    async def exists(self, path: PathLike) -> bool:
        return await self._bridge.run(self._fs.exists, path)

    async def file_size(self, path: PathLike) -> int:
        return await self._bridge.run(self._fs.file_size, path)

    async def get_object_details(self, path: PathLike) -> ObjectDetails:
        return await self._bridge.run(self._fs.get_object_details, path)

    async def create_directory(self, path: PathLike) -> None:
        self._fs.create_directory(path)

    async def link_file(self, src: PathLike, dest: PathLike) -> None:
        self._fs.link_file(src, dest)

    async def list(self, path: PathLike) -> list[str]:
        return await self._bridge.run(self._fs.list, path)

    async def list_pages(self, path: PathLike, continuation_token: Optional[str] = None) -> list[ListPage]:
        return await self._bridge.run(lambda: list(self._fs.iter_pages(path, continuation_token)))

    async def delete_directory(self, path: PathLike) -> None:
        await self._bridge.run(self._fs.delete_directory, path)

    async def batch_delete(self, paths: Sequence[PathLike]) -> None:
        await self._bridge.run(self._fs.batch_delete, paths)
