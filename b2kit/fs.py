"""A filesystem-like object that follows ``fsspec`` and reads and writes files
in a B2 bucket (or local storage directory) through a ``Service``.

Writes are buffered until a full part is available, then sent as a large file
upload, so files of any size can be streamed. Files smaller than one part are
sent in a single request when closed. Reads use ranged downloads.
"""

from __future__ import annotations

import io

from fsspec import AbstractFileSystem
from fsspec.spec import AbstractBufferedFile

from b2kit import config
from b2kit.service import Service
from b2kit.upload import LargeUpload, sha1_hex


class B2FileSystem(AbstractFileSystem):
    protocol = "b2"
    # Each instance wraps its own service
    cachable = False

    def __init__(
        self,
        service: Service,
        bucket_id: str = "",
        part_size: int | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.service = service
        self.bucket_id = bucket_id
        if part_size is None:
            part_size = max(
                config.DEFAULT_PART_SIZE, service.minimum_part_size
            )
        elif part_size < service.minimum_part_size:
            raise ValueError(
                f"Part size {part_size} is below the minimum of "
                f"{service.minimum_part_size}"
            )
        self.part_size = part_size

    def _iter_files(self):
        start_name = ""
        start_id = ""
        while True:
            resp = self.service.list_files(
                self.bucket_id, start_name=start_name, start_id=start_id
            )
            yield from resp.files
            if not resp.next_file_name:
                return
            start_name = resp.next_file_name
            start_id = resp.next_file_id or ""

    @staticmethod
    def _details(f) -> dict:
        return {
            "name": f.file_name,
            "size": f.content_length,
            "type": "file",
            "file_id": f.file_id,
        }

    def ls(self, path="", detail=True, **kwargs):
        prefix = self._strip_protocol(path).strip("/")
        if prefix:
            prefix += "/"
        files = [
            self._details(f)
            for f in self._iter_files()
            if f.file_name.startswith(prefix)
            and (f.action in (None, "upload"))
        ]
        if detail:
            return files
        return [f["name"] for f in files]

    def info(self, path, **kwargs):
        name = self._strip_protocol(path).strip("/")
        for f in self._iter_files():
            if f.file_name == name and f.action in (None, "upload"):
                return self._details(f)
        raise FileNotFoundError(path)

    def _rm(self, path):
        details = self.info(path)
        if not self.service.delete_file(details["file_id"], details["name"]):
            raise OSError(f"Failed to delete {path}")

    def _open(
        self,
        path,
        mode="rb",
        block_size=None,
        autocommit=True,
        cache_options=None,
        **kwargs,
    ):
        if mode not in ("rb", "wb"):
            raise NotImplementedError(f"Mode {mode} is not supported")
        return B2File(
            self,
            self._strip_protocol(path).strip("/"),
            mode,
            block_size or self.part_size,
            autocommit,
            cache_options=cache_options,
            **kwargs,
        )


class B2File(AbstractBufferedFile):
    def __init__(self, fs: B2FileSystem, path, mode="rb", *args, **kwargs):
        super().__init__(fs, path, mode, *args, **kwargs)
        self._upload: LargeUpload | None = None

    def _initiate_upload(self):
        # Small files are sent in one request when closed
        if self.tell() < self.blocksize:
            return
        self._upload = LargeUpload.start(
            self.fs.service, self.path, self.fs.bucket_id
        )

    def _upload_chunk(self, final=False):
        self.buffer.seek(0)
        data = self.buffer.read()
        if self._upload is None:
            service = self.fs.service
            target = service.get_upload_url(self.fs.bucket_id)
            service.upload_file(target, self.path, sha1_hex(data), data)
            return True
        part_size = self.blocksize
        while len(data) >= part_size or (final and data):
            self._upload.upload_part(data[:part_size])
            data = data[part_size:]
        if final:
            self._upload.finish()
            return True
        # Keep the remainder for the next part
        self.buffer = io.BytesIO()
        self.buffer.write(data)
        return False

    def _fetch_range(self, start, end):
        end = min(end, self.size)
        if start >= end:
            return b""
        return self.fs.service.partial_download_by_id(
            self.details["file_id"], start, end - 1
        )
