"""The HTTP transport used to talk to the B2 API."""

from __future__ import annotations

import logging
from functools import partialmethod
from typing import Literal

import requests

from b2kit.errors import BackendError, TransportError

logger = logging.getLogger(__name__)

API_PREFIX = "b2api"
DEFAULT_TIMEOUT = 10.0


def format_url(api_url: str, api_version: str, endpoint: str) -> str:
    """Form the URL for an API endpoint, e.g.,
    ``https://api001.backblazeb2.com/b2api/v3/b2_start_large_file``.
    """
    return f"{api_url}/{API_PREFIX}/{api_version}/{endpoint}"


class Transport:
    """Send requests with a fixed timeout and classify failures.

    Any response with a status code of 400 or above is raised as a
    ``BackendError``, and any failure to get a response at all (including a
    timeout) is raised as a ``TransportError``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        if session is None:
            session = requests.Session()
        self.session = session

    def send(
        self,
        kind: Literal["get", "post", "put", "patch", "delete"],
        url: str,
        params: dict | None = None,
        json: dict | list | None = None,
        data: bytes | None = None,
        headers: dict | None = None,
        **kwargs,
    ) -> requests.Response:
        method = kind.upper()
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e
        if resp.status_code >= 400:
            logger.warning(
                f"{method} {url} returned {resp.status_code}: {resp.text}"
            )
            raise BackendError.from_response(resp)
        return resp

    get = partialmethod(send, "get")
    post = partialmethod(send, "post")

    def close(self) -> None:
        self.session.close()
