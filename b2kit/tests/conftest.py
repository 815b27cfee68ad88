"""Shared fixtures, including a fake B2 API to send requests to."""

import hashlib
import json
import os
from urllib.parse import unquote

import pytest
import requests

from b2kit import config
from b2kit.http import Transport
from b2kit.service import Service, authorize_local_account

API_URL = "https://api001.fake.test"
POD_URL = "https://pod-000.fake.test"
ACCOUNT_TOKEN = "account-token"


def _response(
    url: str,
    status: int = 200,
    body: dict | None = None,
    content: bytes | None = None,
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    if content is None:
        content = json.dumps(body or {}).encode()
        resp.headers["Content-Type"] = "application/json"
    resp._content = content
    resp.encoding = "utf-8"
    return resp


def _error(url: str, status: int, code: str, message: str):
    return _response(
        url, status, {"status": status, "code": code, "message": message}
    )


class FakeB2:
    """Stands in for ``requests.Session``, answering like the B2 API.

    Set ``fail_part_uploads`` to have that many part uploads rejected (or,
    with ``fail_with_timeout``, time out) before they start succeeding.
    """

    def __init__(self, key_id="key-id", key="app-key"):
        self.key_id = key_id
        self.key = key
        self.files = {}
        self.large_files = {}
        self.calls = []
        self.fail_part_uploads = 0
        self.fail_with_timeout = False
        self.fail_finish = False
        self.fail_cancel = False
        self.n_ids = 0
        self.n_upload_urls = 0
        # Upload URL number to the file or bucket ID it was issued for
        self.upload_urls = {}
        self.absolute_minimum_part_size = 5_000_000
        self.closed = False

    def _new_id(self) -> str:
        self.n_ids += 1
        return f"4_zfake_f{self.n_ids:04d}"

    def endpoint_calls(self, endpoint: str) -> list[dict]:
        return [c for c in self.calls if c["endpoint"] == endpoint]

    def close(self):
        self.closed = True

    def request(
        self,
        method,
        url,
        params=None,
        data=None,
        headers=None,
        timeout=None,
        **kwargs,
    ):
        body = kwargs.pop("json", None)
        endpoint = url.rsplit("/", 1)[-1]
        if "/upload_part/" in url:
            endpoint = "upload_part"
        elif "/upload_file/" in url:
            endpoint = "upload_file"
        self.calls.append(
            {
                "method": method,
                "url": url,
                "endpoint": endpoint,
                "params": params or {},
                "json": body,
                "data": data,
                "headers": headers or {},
                "timeout": timeout,
                "auth": kwargs.get("auth"),
            }
        )
        handler = getattr(self, "_" + endpoint, None)
        if handler is None:
            return _error(url, 404, "not_found", f"No such endpoint {url}")
        return handler(
            url=url,
            params=params or {},
            body=body or {},
            data=data,
            headers=headers or {},
            auth=kwargs.get("auth"),
        )

    def _check_token(self, url, headers, token=ACCOUNT_TOKEN):
        if headers.get("Authorization") != token:
            return _error(url, 401, "bad_auth_token", "Invalid token")

    def _b2_authorize_account(self, url, auth, **kwargs):
        if auth != (self.key_id, self.key):
            return _error(url, 401, "unauthorized", "Invalid key")
        storage = {
            "apiUrl": API_URL + "/",
            "downloadUrl": "https://f001.fake.test",
            "recommendedPartSize": 100_000_000,
            "absoluteMinimumPartSize": self.absolute_minimum_part_size,
            "s3ApiUrl": "https://s3.fake.test",
        }
        if "/v3/" in url:
            body = {
                "accountId": "acct",
                "authorizationToken": ACCOUNT_TOKEN,
                "apiInfo": {"storageApi": storage},
            }
        else:
            body = {
                "accountId": "acct",
                "authorizationToken": ACCOUNT_TOKEN,
                **storage,
            }
        return _response(url, body=body)

    def _b2_start_large_file(self, url, body, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        file_id = self._new_id()
        self.large_files[file_id] = {
            "name": body["fileName"],
            "bucket_id": body["bucketId"],
            "parts": {},
        }
        return _response(
            url,
            body={
                "fileId": file_id,
                "fileName": body["fileName"],
                "bucketId": body["bucketId"],
                "contentType": body["contentType"],
                "uploadTimestamp": 1,
            },
        )

    def _b2_get_upload_part_url(self, url, params, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        if params["fileId"] not in self.large_files:
            return _error(url, 400, "bad_request", "Unknown file ID")
        self.n_upload_urls += 1
        self.upload_urls[self.n_upload_urls] = params["fileId"]
        return _response(
            url,
            body={
                "fileId": params["fileId"],
                "uploadUrl": f"{POD_URL}/upload_part/{self.n_upload_urls}",
                "authorizationToken": f"part-token-{self.n_upload_urls}",
            },
        )

    def _upload_part(self, url, data, headers, **kwargs):
        n = url.rsplit("/", 1)[-1]
        err = self._check_token(url, headers, f"part-token-{n}")
        if err is not None:
            return err
        if self.fail_part_uploads > 0:
            self.fail_part_uploads -= 1
            if self.fail_with_timeout:
                raise requests.exceptions.ConnectTimeout("timed out")
            return _error(url, 503, "service_unavailable", "Try again")
        if hashlib.sha1(data).hexdigest() != headers["X-Bz-Content-Sha1"]:
            return _error(url, 400, "bad_request", "Checksum mismatch")
        file_id = self.upload_urls[int(n)]
        part_number = int(headers["X-Bz-Part-Number"])
        self.large_files[file_id]["parts"][part_number] = data
        return _response(
            url,
            body={
                "fileId": file_id,
                "partNumber": part_number,
                "contentLength": len(data),
                "contentSha1": headers["X-Bz-Content-Sha1"],
            },
        )

    def _b2_finish_large_file(self, url, body, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        if self.fail_finish:
            return _error(url, 500, "internal_error", "Finish failed")
        file_id = body["fileId"]
        if file_id not in self.large_files:
            return _error(url, 400, "bad_request", "Unknown file ID")
        large = self.large_files[file_id]
        parts = [large["parts"][n] for n in sorted(large["parts"])]
        sha1s = [hashlib.sha1(p).hexdigest() for p in parts]
        if sha1s != body["partSha1Array"]:
            return _error(url, 400, "bad_request", "Part checksums differ")
        del self.large_files[file_id]
        contents = b"".join(parts)
        self.files[file_id] = {
            "name": large["name"],
            "bucket_id": large["bucket_id"],
            "data": contents,
        }
        return _response(url, body=self._file_json(file_id))

    def _b2_cancel_large_file(self, url, body, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        if self.fail_cancel or body["fileId"] not in self.large_files:
            return _error(url, 400, "bad_request", "Unknown file ID")
        large = self.large_files.pop(body["fileId"])
        return _response(
            url,
            body={
                "fileId": body["fileId"],
                "fileName": large["name"],
                "bucketId": large["bucket_id"],
            },
        )

    def _b2_get_upload_url(self, url, params, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        self.n_upload_urls += 1
        self.upload_urls[self.n_upload_urls] = params["bucketId"]
        return _response(
            url,
            body={
                "bucketId": params["bucketId"],
                "uploadUrl": f"{POD_URL}/upload_file/{self.n_upload_urls}",
                "authorizationToken": f"part-token-{self.n_upload_urls}",
            },
        )

    def _upload_file(self, url, data, headers, **kwargs):
        n = url.rsplit("/", 1)[-1]
        err = self._check_token(url, headers, f"part-token-{n}")
        if err is not None:
            return err
        if hashlib.sha1(data).hexdigest() != headers["X-Bz-Content-Sha1"]:
            return _error(url, 400, "bad_request", "Checksum mismatch")
        file_id = self._new_id()
        self.files[file_id] = {
            "name": unquote(headers["X-Bz-File-Name"]),
            "bucket_id": self.upload_urls[int(n)],
            "data": data,
        }
        return _response(url, body=self._file_json(file_id))

    def _file_json(self, file_id):
        f = self.files[file_id]
        return {
            "fileId": file_id,
            "fileName": f["name"],
            "bucketId": f["bucket_id"],
            "contentLength": len(f["data"]),
            "contentSha1": hashlib.sha1(f["data"]).hexdigest(),
            "contentType": "application/octet-stream",
            "action": "upload",
            "uploadTimestamp": 1,
        }

    def _b2_download_file_by_id(self, url, params, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        if params["fileId"] not in self.files:
            return _error(url, 404, "not_found", "File not present")
        data = self.files[params["fileId"]]["data"]
        if "Range" in headers:
            begin, end = headers["Range"].removeprefix("bytes=").split("-")
            return _response(
                url, 206, content=data[int(begin) : int(end) + 1]
            )
        return _response(url, content=data)

    def _b2_list_file_versions(self, url, params, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        start_name = params.get("startFileName", "")
        ids = sorted(
            (f["name"], file_id)
            for file_id, f in self.files.items()
            if f["name"] >= start_name
        )
        count = params["maxFileCount"]
        files = [self._file_json(file_id) for _, file_id in ids[:count]]
        next_name, next_id = None, None
        if len(ids) > count:
            next_name, next_id = ids[count]
        return _response(
            url,
            body={
                "files": files,
                "nextFileName": next_name,
                "nextFileId": next_id,
            },
        )

    def _b2_delete_file_version(self, url, body, headers, **kwargs):
        err = self._check_token(url, headers)
        if err is not None:
            return err
        f = self.files.get(body["fileId"])
        if f is None or f["name"] != body["fileName"]:
            return _error(url, 400, "file_not_present", "File not present")
        del self.files[body["fileId"]]
        return _response(
            url,
            body={"fileId": body["fileId"], "fileName": body["fileName"]},
        )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the real config file, keyring and environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for key in list(os.environ):
        if key.startswith("B2KIT_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(config, "KEYRING_SUPPORTED", False)
    monkeypatch.setitem(
        config.Settings.model_config,
        "yaml_file",
        config.get_config_yaml_fpath(),
    )
    return home


@pytest.fixture
def tmp_dir(tmp_path, monkeypatch):
    """Fixture to change to a temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fake_b2():
    return FakeB2()


@pytest.fixture
def remote_service(fake_b2) -> Service:
    """A service pointed at the fake API, with a tiny minimum part size."""
    return Service(
        api_url=API_URL,
        authorization_token=ACCOUNT_TOKEN,
        transport=Transport(session=fake_b2),
        minimum_part_size=1,
    )


@pytest.fixture
def local_service(tmp_path) -> Service:
    return authorize_local_account(str(tmp_path / "storage"))
