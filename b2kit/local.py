"""Backend that stores files in a local directory instead of a bucket.

This is meant for development and testing. Each object is a file in the
directory named by its ID, which is always the same as its file name.
Checksums are accepted but never verified.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

from b2kit.backend import DEFAULT_LIST_COUNT
from b2kit.errors import QuotaExceededError, TransportError
from b2kit.models import (
    File,
    FileList,
    FileListItem,
    LargeFile,
    PartUploadTarget,
    StartedUpload,
    UploadTarget,
)

logger = logging.getLogger(__name__)


def get_dir_size(path: str) -> int:
    """Total size of all files under ``path``, in bytes."""
    size = 0
    for dirpath, _, filenames in os.walk(path):
        for fname in filenames:
            size += os.path.getsize(os.path.join(dirpath, fname))
    return size


class LocalBackend:
    # Parts are appended to a file, so any size works
    minimum_part_size = 1

    def __init__(
        self,
        path: str,
        storage_maximum: int = 0,
        logf: Callable[..., None] | None = None,
    ) -> None:
        self.path = path
        self.storage_maximum = storage_maximum
        self.logf = logf or (lambda *args: None)

    def _fpath(self, file_id: str, root: str | None = None) -> str:
        if root is None:
            root = self.path
        root = os.path.abspath(root)
        fpath = os.path.abspath(os.path.join(root, file_id))
        if os.path.commonpath([root, fpath]) != root or fpath == root:
            raise ValueError(f"Invalid file name for local storage: {file_id}")
        return fpath

    def _check_quota(self, path: str, n_bytes: int, storage_maximum: int):
        if storage_maximum <= 0:
            return
        try:
            dir_size = get_dir_size(path)
        except OSError as e:
            raise TransportError(f"Failed to check size of {path}: {e}") from e
        if dir_size + n_bytes > storage_maximum:
            raise QuotaExceededError(
                f"Writing {n_bytes} bytes would exceed the local storage "
                f"maximum of {storage_maximum} bytes ({dir_size} used)",
                details={"path": path},
            )

    def start_large_file(
        self, file_name: str, bucket_id: str
    ) -> StartedUpload:
        fpath = self._fpath(file_name)
        try:
            os.makedirs(os.path.dirname(fpath), exist_ok=True)
            with open(fpath, "wb"):
                pass
        except OSError as e:
            raise TransportError(f"Failed to create {fpath}: {e}") from e
        return StartedUpload(file_id=file_name, file_name=file_name)

    def get_upload_part_url(self, file_id: str) -> PartUploadTarget:
        return PartUploadTarget(
            file_id=file_id,
            upload_url=self.path,
            is_local=True,
            storage_maximum=self.storage_maximum,
        )

    def upload_part(
        self,
        target: PartUploadTarget,
        part_number: int,
        checksum: str,
        contents: bytes,
    ) -> None:
        """Append a part to the end of the file.

        Nothing is written if the part would put the directory over its
        storage maximum.
        """
        self._check_quota(
            target.upload_url, len(contents), target.storage_maximum
        )
        fpath = self._fpath(target.file_id, root=target.upload_url)
        self.logf("Appending part %d to %s", part_number, fpath)
        try:
            with open(fpath, "ab") as f:
                f.write(contents)
        except OSError as e:
            raise TransportError(f"Failed to write to {fpath}: {e}") from e

    def finish_large_file(
        self, file_id: str, checksums: list[str]
    ) -> LargeFile:
        fpath = self._fpath(file_id)
        try:
            size = os.path.getsize(fpath)
        except OSError as e:
            raise TransportError(f"Failed to stat {fpath}: {e}") from e
        return LargeFile(
            file_id=file_id,
            file_name=file_id,
            bucket_id=file_id,
            content_length=size,
        )

    def cancel_large_file(self, file_id: str) -> bool:
        if not file_id:
            logger.warning("Skipping cancel of a large file with no ID")
            return False
        return self.delete_file(file_id, file_id)

    def get_upload_url(self, bucket_id: str) -> UploadTarget:
        return UploadTarget(
            upload_url=self.path,
            is_local=True,
            storage_maximum=self.storage_maximum,
        )

    def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        checksum: str,
        contents: bytes,
    ) -> File:
        if not os.path.isdir(target.upload_url):
            raise TransportError(
                f"Local storage directory {target.upload_url} does not exist"
            )
        self._check_quota(
            target.upload_url, len(contents), target.storage_maximum
        )
        fpath = self._fpath(file_name, root=target.upload_url)
        try:
            os.makedirs(os.path.dirname(fpath), exist_ok=True)
            with open(fpath, "wb") as f:
                f.write(contents)
        except OSError as e:
            raise TransportError(f"Failed to write {fpath}: {e}") from e
        return File(
            file_id=file_name,
            file_name=file_name,
            content_length=len(contents),
            content_sha1=checksum,
        )

    def download_by_id(self, file_id: str) -> bytes:
        fpath = self._fpath(file_id)
        try:
            with open(fpath, "rb") as f:
                return f.read()
        except OSError as e:
            raise TransportError(f"Failed to read {fpath}: {e}") from e

    def partial_download_by_id(
        self, file_id: str, begin: int, end: int
    ) -> bytes:
        """Read bytes ``begin`` through ``end``, inclusive, matching the
        range semantics of the B2 API.
        """
        if begin < 0 or end < begin:
            raise ValueError(f"Invalid byte range: {begin}-{end}")
        n_bytes = end - begin + 1
        fpath = self._fpath(file_id)
        try:
            with open(fpath, "rb") as f:
                f.seek(begin)
                contents = f.read(n_bytes)
        except OSError as e:
            raise TransportError(f"Failed to read {fpath}: {e}") from e
        if len(contents) != n_bytes:
            raise TransportError(
                f"Requested bytes {begin}-{end} of {file_id} but only "
                f"{len(contents)} were available"
            )
        return contents

    def list_files(
        self,
        bucket_id: str,
        count: int = DEFAULT_LIST_COUNT,
        start_name: str = "",
        start_id: str = "",
    ) -> FileList:
        """List files in the directory, sorted by name.

        Since the ID of a local file is its name, ``start_id`` is ignored.
        """
        if count <= 0:
            count = DEFAULT_LIST_COUNT
        names = []
        try:
            for dirpath, _, filenames in os.walk(self.path):
                for fname in filenames:
                    fpath = os.path.join(dirpath, fname)
                    names.append(
                        os.path.relpath(fpath, self.path).replace(os.sep, "/")
                    )
        except OSError as e:
            raise TransportError(f"Failed to list {self.path}: {e}") from e
        names = sorted(n for n in names if n >= start_name)
        files = []
        for name in names[:count]:
            size = os.path.getsize(self._fpath(name))
            files.append(
                FileListItem(
                    file_id=name,
                    file_name=name,
                    content_length=size,
                    action="upload",
                )
            )
        next_name = names[count] if len(names) > count else None
        return FileList(
            files=files, next_file_name=next_name, next_file_id=next_name
        )

    def delete_file(self, file_id: str, file_name: str) -> bool:
        if not file_id:
            logger.warning("Skipping delete of a file with no ID")
            return False
        fpath = self._fpath(file_id)
        try:
            os.remove(fpath)
        except OSError as e:
            logger.warning(f"Failed to delete {fpath}: {e}")
            return False
        return True
