from __future__ import annotations

import re
import time
from contextlib import suppress
from typing import Optional

import requests

from ..core import ByteStream, Repository
from ..defaults import DEFAULT_CHUNK_SIZE
from ..errors import HttpFetchError

_FILENAME = re.compile(r"""filename\*?=(?:UTF-8'')?["']?([^"';]+)""", re.IGNORECASE)


def _parse_rate_limit_wait_seconds(resp: requests.Response) -> Optional[int]:
    ra = resp.headers.get("Retry-After")
    if ra:
        with suppress(ValueError):
            return int(float(ra))
    reset = resp.headers.get("X-RateLimit-Reset") or resp.headers.get("RateLimit-Reset")
    if reset:
        with suppress(ValueError):
            reset_ts = int(float(reset))
            now = int(time.time())
            return max(0, reset_ts - now)
    return None


def get(
    session: requests.Session,
    url: str,
    *,
    repo: Repository,
    params=None,
    headers=None,
    stream: bool = False,
) -> requests.Response:
    """GET `url`, raising HttpFetchError for anything but a 2xx. Never sleeps or retries."""
    try:
        resp = session.get(url, params=params, headers=headers, stream=stream)
    except requests.RequestException as e:
        raise HttpFetchError(
            f"Request for {repo.slug} failed: {e}",
            context={"url": url},
        ) from e
    if 200 <= resp.status_code < 300:
        return resp
    hint = None
    if resp.status_code in (403, 429):
        wait = _parse_rate_limit_wait_seconds(resp)
        if wait is not None:
            hint = f"Rate limited; retry in {wait}s or provide an auth token."
    elif resp.status_code == 404:
        hint = "Check the repository name and branch, or provide a token for private repositories."
    resp.close()
    raise HttpFetchError(
        f"HTTP {resp.status_code} fetching {repo.slug}",
        hint=hint,
        context={"url": url},
    )


def tarball_filename(resp: requests.Response, default: str) -> str:
    disposition = resp.headers.get("Content-Disposition", "")
    m = _FILENAME.search(disposition)
    if not m:
        return default
    return m.group(1).strip()


def response_stream(resp: requests.Response, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ByteStream:
    return ByteStream(resp.iter_content(chunk_size=chunk_size), on_close=resp.close)
