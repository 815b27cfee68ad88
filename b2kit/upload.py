"""Uploading large files in parts.

A large file upload is started, then each part is sent in order, and finally
the upload is finished by sending the SHA-1 checksums of every part in the
same order, which is the order the service assembles them in. Parts are sent
one at a time. A part that fails is retried with a fresh upload target, up to
``MAX_PART_ATTEMPTS`` attempts in total, after which the upload is canceled.
"""

from __future__ import annotations

import hashlib
import logging
from typing import BinaryIO, Iterator, Union

from b2kit.errors import (
    B2Error,
    BackendError,
    TransportError,
    UploadFailedError,
)
from b2kit.models import LargeFile, PartRecord
from b2kit.service import Service

logger = logging.getLogger(__name__)

MAX_PART_ATTEMPTS = 3

Source = Union[bytes, bytearray, memoryview, BinaryIO]


def sha1_hex(contents: bytes) -> str:
    return hashlib.sha1(contents).hexdigest()


def iter_parts(source: Source, part_size: int) -> Iterator[bytes]:
    """Split ``source`` into consecutive parts of ``part_size`` bytes.

    The last part holds whatever remains. File objects are read one part at a
    time.
    """
    if part_size <= 0:
        raise ValueError("Part size must be positive")
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), part_size):
            yield data[start : start + part_size]
        return
    while True:
        chunk = _read_exactly(source, part_size)
        if not chunk:
            return
        yield chunk


def _read_exactly(f: BinaryIO, n: int) -> bytes:
    # Unbuffered streams can return less than asked for before EOF
    chunks = []
    remaining = n
    while remaining > 0:
        chunk = f.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class LargeUpload:
    """A large file upload in progress.

    Create with ``LargeUpload.start``, call ``upload_part`` for each part in
    order, then ``finish``. If anything fails the upload is canceled and
    ``UploadFailedError`` is raised; the object can't be used after that.
    """

    def __init__(self, service: Service, file_id: str, file_name: str):
        self.service = service
        self.file_id = file_id
        self.file_name = file_name
        self.parts: list[PartRecord] = []
        self.closed = False

    @classmethod
    def start(
        cls, service: Service, file_name: str, bucket_id: str
    ) -> "LargeUpload":
        try:
            started = service.start_large_file(file_name, bucket_id)
        except B2Error as e:
            raise UploadFailedError(
                f"Failed to start large file {file_name}: {e}"
            ) from e
        return cls(service, started.file_id, started.file_name)

    @property
    def checksums(self) -> list[str]:
        return [part.content_sha1 for part in self.parts]

    @property
    def content_length(self) -> int:
        return sum(part.content_length for part in self.parts)

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError(f"Upload of {self.file_name} is already closed")

    def upload_part(self, contents: bytes) -> PartRecord:
        """Upload the next part, retrying with a new upload target on
        failure.
        """
        self._check_open()
        part_number = len(self.parts) + 1
        checksum = sha1_hex(contents)
        for attempt in range(1, MAX_PART_ATTEMPTS + 1):
            try:
                target = self.service.get_upload_part_url(self.file_id)
                self.service.upload_part(
                    target, part_number, checksum, contents
                )
                break
            except (TransportError, BackendError) as e:
                logger.warning(
                    f"Attempt {attempt}/{MAX_PART_ATTEMPTS} to upload part "
                    f"{part_number} of {self.file_name} failed: {e}"
                )
                error = e
        else:
            self.cancel()
            raise UploadFailedError(
                f"Failed to upload part {part_number} of {self.file_name} "
                f"after {MAX_PART_ATTEMPTS} attempts: {error}",
                file_id=self.file_id,
                part_number=part_number,
                parts=list(self.parts),
            ) from error
        part = PartRecord(
            part_number=part_number,
            content_sha1=checksum,
            content_length=len(contents),
        )
        self.parts.append(part)
        return part

    def finish(self) -> LargeFile:
        self._check_open()
        try:
            large_file = self.service.finish_large_file(
                self.file_id, self.checksums
            )
        except B2Error as e:
            self.cancel()
            raise UploadFailedError(
                f"Failed to finish large file {self.file_name}: {e}",
                file_id=self.file_id,
                parts=list(self.parts),
            ) from e
        self.closed = True
        return large_file

    def cancel(self) -> bool:
        """Cancel the upload.

        This is best effort: failures are logged and ``False`` is returned.
        """
        if self.closed:
            return False
        self.closed = True
        try:
            canceled = self.service.cancel_large_file(self.file_id)
        except B2Error as e:
            logger.warning(f"Failed to cancel upload of {self.file_name}: {e}")
            return False
        if not canceled:
            logger.warning(f"Upload of {self.file_name} was not canceled")
        return canceled


def upload_large_file(
    service: Service,
    file_name: str,
    bucket_id: str,
    source: Source,
    part_size: int,
) -> LargeFile:
    """Upload ``source`` as a single file, in parts of ``part_size`` bytes.

    Raises ``UploadFailedError`` if the upload can't be started, a part fails
    on every attempt, or the upload can't be finished.
    """
    if part_size < service.minimum_part_size:
        raise ValueError(
            f"Part size {part_size} is below the minimum of "
            f"{service.minimum_part_size} bytes"
        )
    parts = iter_parts(source, part_size)
    first = next(parts, b"")
    if not first:
        raise ValueError(f"Nothing to upload for {file_name}")
    upload = LargeUpload.start(service, file_name, bucket_id)
    service.logf("Started large file %s (%s)", file_name, upload.file_id)
    upload.upload_part(first)
    try:
        for contents in parts:
            upload.upload_part(contents)
    except OSError as e:
        upload.cancel()
        raise UploadFailedError(
            f"Failed to read {file_name}: {e}",
            file_id=upload.file_id,
            parts=list(upload.parts),
        ) from e
    return upload.finish()


def cancel_large_file(service: Service, file_id: str) -> bool:
    """Cancel a large file upload, returning whether it worked."""
    if not file_id:
        logger.warning("Skipping cancel of a large file with no ID")
        return False
    return service.cancel_large_file(file_id)
