"""Data models for B2 API requests and responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _B2Model(BaseModel):
    # The API speaks camelCase; we accept either form and ignore extra keys
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class StartedUpload(_B2Model):
    """An in-progress large file, as returned by ``b2_start_large_file``."""

    file_id: str
    file_name: str
    bucket_id: str = ""
    content_type: str | None = None
    upload_timestamp: int | None = None


class PartUploadTarget(_B2Model):
    """Where to send one part of a large file.

    A target is only good for a single upload attempt.
    """

    file_id: str
    upload_url: str
    authorization_token: str = ""
    is_local: bool = False
    storage_maximum: int = 0


class UploadTarget(_B2Model):
    """Where to send a small file in a single request."""

    bucket_id: str = ""
    upload_url: str
    authorization_token: str = ""
    is_local: bool = False
    storage_maximum: int = 0


class PartRecord(BaseModel):
    part_number: int
    content_sha1: str
    content_length: int


class File(_B2Model):
    """A finished file."""

    file_id: str
    file_name: str
    bucket_id: str = ""
    content_length: int = 0
    content_sha1: str | None = None
    content_type: str | None = None
    action: str | None = None
    upload_timestamp: int | None = None


class LargeFile(File):
    """A file assembled by ``b2_finish_large_file``."""

    pass


class FileListItem(File):
    pass


class FileList(_B2Model):
    files: list[FileListItem] = []
    next_file_name: str | None = None
    next_file_id: str | None = None


class _StorageApiInfo(_B2Model):
    api_url: str
    download_url: str = ""
    recommended_part_size: int | None = None
    absolute_minimum_part_size: int | None = None
    s3_api_url: str | None = None


class _ApiInfo(_B2Model):
    storage_api: _StorageApiInfo


class AuthV3(_B2Model):
    """Response from the v3 ``b2_authorize_account`` endpoint."""

    account_id: str
    authorization_token: str
    api_info: _ApiInfo


class AuthV2(_B2Model):
    """Response from the v2 ``b2_authorize_account`` endpoint."""

    account_id: str
    authorization_token: str
    api_url: str
    download_url: str = ""
    recommended_part_size: int | None = None
    absolute_minimum_part_size: int | None = None
    s3_api_url: str | None = None


class AccountAuthorization(BaseModel):
    """Authorization details, independent of the API version used."""

    api_version: Literal["v2", "v3"]
    account_id: str
    authorization_token: str
    api_url: str
    download_url: str = ""
    recommended_part_size: int | None = None
    absolute_minimum_part_size: int | None = None
    s3_api_url: str | None = None

    @classmethod
    def from_response(
        cls, api_version: Literal["v2", "v3"], data: dict
    ) -> "AccountAuthorization":
        if api_version == "v3":
            auth = AuthV3.model_validate(data)
            storage = auth.api_info.storage_api
            fields = storage.model_dump()
        else:
            auth = AuthV2.model_validate(data)
            fields = auth.model_dump(
                exclude={"account_id", "authorization_token"}
            )
        fields["api_url"] = fields["api_url"].rstrip("/")
        fields["download_url"] = (
            fields["download_url"] or fields["api_url"]
        ).rstrip("/")
        return cls(
            api_version=api_version,
            account_id=auth.account_id,
            authorization_token=auth.authorization_token,
            **fields,
        )
