"""Backend that talks to the B2 HTTP API."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar
from urllib.parse import quote

import requests
from pydantic import BaseModel

from b2kit.backend import DEFAULT_LIST_COUNT
from b2kit.errors import BackendError
from b2kit.http import Transport, format_url
from b2kit.models import (
    File,
    FileList,
    LargeFile,
    PartUploadTarget,
    StartedUpload,
    UploadTarget,
)

logger = logging.getLogger(__name__)

API_START_LARGE_FILE = "b2_start_large_file"
API_GET_UPLOAD_PART_URL = "b2_get_upload_part_url"
API_FINISH_LARGE_FILE = "b2_finish_large_file"
API_CANCEL_LARGE_FILE = "b2_cancel_large_file"
API_GET_UPLOAD_URL = "b2_get_upload_url"
API_DOWNLOAD_BY_ID = "b2_download_file_by_id"
API_LIST_FILE_VERSIONS = "b2_list_file_versions"
API_DELETE_FILE_VERSION = "b2_delete_file_version"

# Let the service detect the content type from the file name
AUTO_CONTENT_TYPE = "b2/x-auto"
# 5 MiB
MIN_PART_SIZE = 5 * 1024 * 1024

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: type[ModelT], resp: requests.Response) -> ModelT:
    try:
        return model.model_validate(resp.json())
    except ValueError as e:
        raise BackendError(
            f"Unexpected response from {resp.url}: {e}",
            status=resp.status_code,
        ) from e


class RemoteBackend:
    def __init__(
        self,
        api_url: str,
        authorization_token: str,
        api_version: str,
        transport: Transport,
        download_url: str = "",
        minimum_part_size: int = MIN_PART_SIZE,
        logf: Callable[..., None] | None = None,
    ) -> None:
        self.api_url = api_url
        self.authorization_token = authorization_token
        self.api_version = api_version
        self.transport = transport
        self.download_url = download_url or api_url
        self.minimum_part_size = minimum_part_size
        self.logf = logf or (lambda *args: None)

    def _url(self, endpoint: str) -> str:
        return format_url(self.api_url, self.api_version, endpoint)

    def _headers(self, headers: dict | None = None) -> dict:
        base_headers = {"Authorization": self.authorization_token}
        if headers is not None:
            return base_headers | headers
        return base_headers

    def start_large_file(
        self, file_name: str, bucket_id: str
    ) -> StartedUpload:
        """Start a large file upload.

        The file name cannot change once the upload has started.
        """
        resp = self.transport.post(
            self._url(API_START_LARGE_FILE),
            json={
                "bucketId": bucket_id,
                "fileName": file_name,
                "contentType": AUTO_CONTENT_TYPE,
            },
            headers=self._headers(),
        )
        return _parse(StartedUpload, resp)

    def get_upload_part_url(self, file_id: str) -> PartUploadTarget:
        resp = self.transport.get(
            self._url(API_GET_UPLOAD_PART_URL),
            params={"fileId": file_id},
            headers=self._headers(),
        )
        return _parse(PartUploadTarget, resp)

    def upload_part(
        self,
        target: PartUploadTarget,
        part_number: int,
        checksum: str,
        contents: bytes,
    ) -> None:
        """Upload one part of a large file.

        Part numbers start at 1. The service checks ``checksum`` against what
        it receives and rejects the part if they differ.
        """
        self.transport.post(
            target.upload_url,
            data=contents,
            headers={
                "Authorization": target.authorization_token,
                "Content-Length": str(len(contents)),
                "X-Bz-Part-Number": str(part_number),
                "X-Bz-Content-Sha1": checksum,
            },
        )

    def finish_large_file(
        self, file_id: str, checksums: list[str]
    ) -> LargeFile:
        """Assemble the uploaded parts, in the order of ``checksums``."""
        resp = self.transport.post(
            self._url(API_FINISH_LARGE_FILE),
            json={"fileId": file_id, "partSha1Array": list(checksums)},
            headers=self._headers(),
        )
        return _parse(LargeFile, resp)

    def cancel_large_file(self, file_id: str) -> bool:
        """Cancel a large file upload and discard its parts.

        Returns ``False`` if the service refuses, e.g., because the file ID is
        unknown or already finished.
        """
        if not file_id:
            logger.warning("Skipping cancel of a large file with no ID")
            return False
        try:
            self.transport.post(
                self._url(API_CANCEL_LARGE_FILE),
                json={"fileId": file_id},
                headers=self._headers(),
            )
        except BackendError as e:
            logger.warning(f"Failed to cancel large file {file_id}: {e}")
            return False
        return True

    def get_upload_url(self, bucket_id: str) -> UploadTarget:
        resp = self.transport.get(
            self._url(API_GET_UPLOAD_URL),
            params={"bucketId": bucket_id},
            headers=self._headers(),
        )
        return _parse(UploadTarget, resp)

    def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        checksum: str,
        contents: bytes,
    ) -> File:
        resp = self.transport.post(
            target.upload_url,
            data=contents,
            headers={
                "Authorization": target.authorization_token,
                "Content-Type": "application/octet-stream",
                "Content-Length": str(len(contents)),
                "X-Bz-File-Name": quote(file_name, safe="/"),
                "X-Bz-Content-Sha1": checksum,
            },
        )
        return _parse(File, resp)

    def _download(self, file_id: str, headers: dict | None = None) -> bytes:
        url = format_url(
            self.download_url, self.api_version, API_DOWNLOAD_BY_ID
        )
        resp = self.transport.get(
            url,
            params={"fileId": file_id},
            headers=self._headers(headers),
        )
        return resp.content

    def download_by_id(self, file_id: str) -> bytes:
        return self._download(file_id)

    def partial_download_by_id(
        self, file_id: str, begin: int, end: int
    ) -> bytes:
        """Download bytes ``begin`` through ``end``, inclusive."""
        return self._download(file_id, {"Range": f"bytes={begin}-{end}"})

    def list_files(
        self,
        bucket_id: str,
        count: int = DEFAULT_LIST_COUNT,
        start_name: str = "",
        start_id: str = "",
    ) -> FileList:
        if count <= 0:
            count = DEFAULT_LIST_COUNT
        params = {"bucketId": bucket_id, "maxFileCount": count}
        if start_name:
            params["startFileName"] = start_name
        if start_id:
            params["startFileId"] = start_id
        self.logf("Listing up to %d files in %s", count, bucket_id)
        resp = self.transport.get(
            self._url(API_LIST_FILE_VERSIONS),
            params=params,
            headers=self._headers(),
        )
        return _parse(FileList, resp)

    def delete_file(self, file_id: str, file_name: str) -> bool:
        """Delete a file version.

        Both the ID and name are required, and are provided when a file
        finishes uploading.
        """
        if not file_id:
            logger.warning("Skipping delete of a file with no ID")
            return False
        try:
            self.transport.post(
                self._url(API_DELETE_FILE_VERSION),
                json={"fileId": file_id, "fileName": file_name},
                headers=self._headers(),
            )
        except BackendError as e:
            logger.warning(f"Failed to delete {file_name} ({file_id}): {e}")
            return False
        return True
