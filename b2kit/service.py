"""Account authorization and the service handle all operations go through."""

from __future__ import annotations

import logging
import os
from typing import Literal

import requests

from b2kit import config
from b2kit.backend import DEFAULT_LIST_COUNT, Backend
from b2kit.errors import AuthorizationError, BackendError
from b2kit.http import DEFAULT_TIMEOUT, Transport, format_url
from b2kit.local import LocalBackend
from b2kit.models import (
    AccountAuthorization,
    File,
    FileList,
    LargeFile,
    PartUploadTarget,
    StartedUpload,
    UploadTarget,
)
from b2kit.remote import MIN_PART_SIZE, RemoteBackend

logger = logging.getLogger(__name__)

AUTH_BASE_URL = "https://api.backblazeb2.com"
API_AUTHORIZE_ACCOUNT = "b2_authorize_account"

ApiVersion = Literal["v2", "v3"]


class Service:
    """A handle on either a B2 account or a local storage directory.

    Which backend is used is decided here, once; everything else in the
    library goes through the handle without caring which one it got.
    """

    def __init__(
        self,
        api_url: str = "",
        authorization_token: str = "",
        api_version: ApiVersion = "v3",
        local_path: str = "",
        storage_maximum: int = 0,
        logging_enabled: bool = False,
        download_url: str = "",
        minimum_part_size: int = MIN_PART_SIZE,
        account: AccountAuthorization | None = None,
        transport: Transport | None = None,
    ) -> None:
        is_remote = bool(api_url and authorization_token)
        if is_remote == bool(local_path):
            raise ValueError(
                "A service needs either an API URL and authorization token, "
                "or a local path, but not both"
            )
        if api_version not in ("v2", "v3"):
            raise ValueError(f"Unknown API version '{api_version}'")
        self._api_url = api_url
        self._authorization_token = authorization_token
        self._api_version = api_version
        self._local_path = local_path
        self._storage_maximum = storage_maximum
        self._account = account
        self.logging = logging_enabled
        if local_path:
            self._backend = LocalBackend(
                local_path, storage_maximum=storage_maximum, logf=self.logf
            )
        else:
            self._backend = RemoteBackend(
                api_url,
                authorization_token,
                api_version,
                transport=transport or Transport(),
                download_url=download_url,
                minimum_part_size=minimum_part_size,
                logf=self.logf,
            )

    def __repr__(self) -> str:
        if self.is_local:
            return (
                f"Service(local_path={self.local_path!r}, "
                f"storage_maximum={self.storage_maximum})"
            )
        return (
            f"Service(api_url={self.api_url!r}, "
            f"api_version={self.api_version!r})"
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    @property
    def authorization_token(self) -> str:
        return self._authorization_token

    @property
    def api_version(self) -> ApiVersion:
        return self._api_version

    @property
    def is_local(self) -> bool:
        return bool(self._local_path)

    @property
    def local_path(self) -> str:
        return self._local_path

    @property
    def storage_maximum(self) -> int:
        return self._storage_maximum

    @property
    def account(self) -> AccountAuthorization | None:
        return self._account

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def minimum_part_size(self) -> int:
        return self._backend.minimum_part_size

    def set_logging(self, enable: bool) -> None:
        self.logging = enable

    def logf(self, msg: str, *args) -> None:
        """Log a message about an individual call, if logging is enabled."""
        if not self.logging:
            return
        logger.info(msg, *args)

    def start_large_file(
        self, file_name: str, bucket_id: str
    ) -> StartedUpload:
        self.logf("Starting large file %s in bucket %s", file_name, bucket_id)
        return self._backend.start_large_file(file_name, bucket_id)

    def get_upload_part_url(self, file_id: str) -> PartUploadTarget:
        return self._backend.get_upload_part_url(file_id)

    def upload_part(
        self,
        target: PartUploadTarget,
        part_number: int,
        checksum: str,
        contents: bytes,
    ) -> None:
        self.logf(
            "Uploading part %d of %s (%d bytes)",
            part_number,
            target.file_id,
            len(contents),
        )
        self._backend.upload_part(target, part_number, checksum, contents)

    def finish_large_file(
        self, file_id: str, checksums: list[str]
    ) -> LargeFile:
        self.logf("Finishing %s with %d parts", file_id, len(checksums))
        return self._backend.finish_large_file(file_id, checksums)

    def cancel_large_file(self, file_id: str) -> bool:
        self.logf("Canceling large file %s", file_id)
        return self._backend.cancel_large_file(file_id)

    def get_upload_url(self, bucket_id: str) -> UploadTarget:
        return self._backend.get_upload_url(bucket_id)

    def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        checksum: str,
        contents: bytes,
    ) -> File:
        """Upload a file in a single request, with no retries."""
        self.logf("Uploading %s (%d bytes)", file_name, len(contents))
        return self._backend.upload_file(
            target, file_name, checksum, contents
        )

    def download_by_id(self, file_id: str) -> bytes:
        """Download an entire file."""
        self.logf("Downloading %s", file_id)
        return self._backend.download_by_id(file_id)

    def partial_download_by_id(
        self, file_id: str, begin: int, end: int
    ) -> bytes:
        """Download part of a file.

        Both ``begin`` and ``end`` are included, so ``begin=0, end=99`` returns
        the first 100 bytes.
        """
        self.logf("Downloading bytes %d-%d of %s", begin, end, file_id)
        return self._backend.partial_download_by_id(file_id, begin, end)

    def list_files(
        self,
        bucket_id: str,
        count: int = DEFAULT_LIST_COUNT,
        start_name: str = "",
        start_id: str = "",
    ) -> FileList:
        """List up to ``count`` files in the bucket, starting with
        ``start_name`` and, optionally, ``start_id``.

        If there are more, the returned list has ``next_file_name`` and
        ``next_file_id`` set, which can be passed back in to get the rest.
        """
        return self._backend.list_files(
            bucket_id, count=count, start_name=start_name, start_id=start_id
        )

    def list_all_files(self, bucket_id: str) -> FileList:
        return self.list_files(bucket_id, DEFAULT_LIST_COUNT)

    def list_n_files(self, bucket_id: str, count: int) -> FileList:
        return self.list_files(bucket_id, count)

    def delete_file(self, file_id: str, file_name: str) -> bool:
        self.logf("Deleting %s (%s)", file_name, file_id)
        return self._backend.delete_file(file_id, file_name)


def authorize_account(
    key_id: str,
    key: str,
    api_version: ApiVersion = "v3",
    timeout: float = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> Service:
    """Exchange an application key for an API URL and authorization token."""
    transport = Transport(timeout=timeout, session=session)
    try:
        resp = transport.get(
            format_url(AUTH_BASE_URL, api_version, API_AUTHORIZE_ACCOUNT),
            auth=(key_id, key),
        )
    except BackendError as e:
        raise AuthorizationError(
            f"Failed to authorize account: {e.message}",
            status=e.status,
            code=e.code,
        ) from e
    try:
        account = AccountAuthorization.from_response(api_version, resp.json())
    except ValueError as e:
        raise AuthorizationError(
            f"Unexpected authorization response: {e}"
        ) from e
    minimum_part_size = account.absolute_minimum_part_size or MIN_PART_SIZE
    return Service(
        api_url=account.api_url,
        authorization_token=account.authorization_token,
        api_version=api_version,
        download_url=account.download_url,
        minimum_part_size=minimum_part_size,
        account=account,
        transport=transport,
    )


def authorize_local_account(path: str, storage_maximum: int = 0) -> Service:
    """Create a service that saves files to ``path`` instead of B2.

    The directory is created if it doesn't exist. If ``storage_maximum`` is
    positive, writes that would make the directory larger than that many
    bytes are refused.
    """
    os.makedirs(path, exist_ok=True)
    return Service(local_path=path, storage_maximum=storage_maximum)


def connect(settings: config.Settings | None = None) -> Service:
    """Create a service from the config.

    If a local path is configured, files are stored there. Otherwise the
    account is authorized with the configured key ID and application key.
    """
    if settings is None:
        settings = config.read()
    if settings.local_path:
        service = authorize_local_account(
            settings.local_path, storage_maximum=settings.storage_maximum
        )
    elif settings.key_id and settings.application_key:
        service = authorize_account(
            settings.key_id,
            str(settings.application_key),
            api_version=settings.api_version,
            timeout=settings.timeout,
        )
    else:
        raise ValueError(
            "Either local_path or key_id and application_key must be set"
        )
    service.set_logging(settings.logging)
    return service
