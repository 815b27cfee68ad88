"""The interface shared by the remote and local storage backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from b2kit.models import (
    File,
    FileList,
    LargeFile,
    PartUploadTarget,
    StartedUpload,
    UploadTarget,
)

DEFAULT_LIST_COUNT = 100


@runtime_checkable
class Backend(Protocol):
    """Storage backend.

    A ``Service`` holds exactly one of these, chosen when it is created.
    """

    minimum_part_size: int

    def start_large_file(
        self, file_name: str, bucket_id: str
    ) -> StartedUpload: ...

    def get_upload_part_url(self, file_id: str) -> PartUploadTarget: ...

    def upload_part(
        self,
        target: PartUploadTarget,
        part_number: int,
        checksum: str,
        contents: bytes,
    ) -> None: ...

    def finish_large_file(
        self, file_id: str, checksums: list[str]
    ) -> LargeFile: ...

    def cancel_large_file(self, file_id: str) -> bool: ...

    def get_upload_url(self, bucket_id: str) -> UploadTarget: ...

    def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        checksum: str,
        contents: bytes,
    ) -> File: ...

    def download_by_id(self, file_id: str) -> bytes: ...

    def partial_download_by_id(
        self, file_id: str, begin: int, end: int
    ) -> bytes: ...

    def list_files(
        self,
        bucket_id: str,
        count: int = DEFAULT_LIST_COUNT,
        start_name: str = "",
        start_id: str = "",
    ) -> FileList: ...

    def delete_file(self, file_id: str, file_name: str) -> bool: ...
