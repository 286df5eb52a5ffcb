from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeVar

from .types import TCommitHash, TOwner, TRepoName, TSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Repository:
    owner: TOwner
    name: TRepoName
    branch: str | None = None
    subdir: str | None = None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True, slots=True)
class HostConfig:
    source: TSource
    base_url: str
    api_url: str
    # Basic-auth username paired with a token when git talks to the host over HTTPS.
    git_username: str
    token_env: str

    def clone_url(self, repo: Repository) -> str:
        return f"{self.base_url}/{repo.owner}/{repo.name}.git"


class Writer(Protocol):
    def write(self, text: str) -> None: ...


class StdoutWriter(Writer):
    def write(self, text: str) -> None:
        sys.stdout.write(text)


class StringWriter(Writer):
    """Collects written text for tests and callers; read it back with `text()`."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def write(self, text: str) -> None:  # Writer protocol
        self._parts.append(text)

    def text(self) -> str:
        return "".join(self._parts)


class ByteStream:
    """
    Single-pass byte stream over an iterator of chunks, with an explicit release.

    `close()` finalizes the chunk iterator and then runs `on_close` exactly once,
    whichever way the stream ends: drained to EOF, failed mid-read, or closed
    early by the consumer. `cancel()` is the same operation under the name
    consumers use when abandoning a download.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._chunks: Iterator[bytes] = iter(chunks)
        self._buffer = bytearray()
        self._on_close = on_close
        self._exhausted = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if self._closed:
            if self._exhausted:
                return b""
            raise ValueError("read from a canceled stream")
        try:
            while not self._exhausted and (size is None or size < 0 or len(self._buffer) < size):
                try:
                    self._buffer.extend(next(self._chunks))
                except StopIteration:
                    self._exhausted = True
        except Exception:
            self.close()
            raise
        if size is None or size < 0:
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        if not data and self._exhausted:
            self.close()
        return data

    def __iter__(self) -> Iterator[bytes]:
        if self._buffer:
            pending = bytes(self._buffer)
            self._buffer.clear()
            yield pending
        while chunk := self._next_chunk():
            yield chunk

    def _next_chunk(self) -> bytes:
        if self._closed:
            if self._exhausted:
                return b""
            raise ValueError("read from a canceled stream")
        try:
            # Empty chunks would end iteration early; skip them.
            while not (chunk := next(self._chunks)):
                pass
        except StopIteration:
            self._exhausted = True
            self.close()
            return b""
        except Exception:
            self.close()
            raise
        return chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        try:
            finalize = getattr(self._chunks, "close", None)
            if finalize is not None:
                finalize()
        finally:
            if self._on_close is not None:
                on_close, self._on_close = self._on_close, None
                on_close()

    def cancel(self) -> None:
        self.close()

    def __enter__(self) -> ByteStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True, slots=True)
class Tarball:
    name: str
    body: ByteStream


class Fetcher(Protocol):
    label: str

    def fetch_tarball(
        self, repo: Repository, *, ref: str | None = None, auth_token: str | None = None
    ) -> Tarball: ...
    def fetch_latest_commit(
        self, repo: Repository, *, auth_token: str | None = None
    ) -> TCommitHash: ...


class Extractor(Protocol):
    def __call__(self, tarball: Tarball, dest: Path, *, subdir: str | None = None) -> Path: ...


@dataclass(slots=True)
class DownloadOptions:
    repo: Repository
    dest: str | Path
    auth_token: str | None = None
    cwd: str | Path | None = None

    def resolve_dest(self) -> Path:
        base = Path.cwd() if self.cwd is None else Path(self.cwd)
        return (base / self.dest).resolve()


class FetchChain:
    """
    Tries each fetcher in order until one produces a tarball that extracts cleanly.

    The order of `fetchers` is the whole fallback policy: the first entry is the
    preferred path, each later one is tried once after everything before it failed.
    """

    def __init__(self, fetchers: Sequence[Fetcher], *, extractor: Extractor | None = None) -> None:
        if not fetchers:
            raise ValueError("FetchChain requires at least one fetcher")
        self.fetchers = list(fetchers)
        if extractor is None:
            from .extract import extract_tarball

            extractor = extract_tarball
        self.extractor = extractor

    def download(self, options: DownloadOptions) -> Fetcher:
        repo = options.repo
        dest = options.resolve_dest()

        def attempt(fetcher: Fetcher) -> Fetcher:
            tarball = fetcher.fetch_tarball(repo, auth_token=options.auth_token)
            with tarball.body:
                self.extractor(tarball, dest, subdir=repo.subdir)
            return fetcher

        return self._first_success(repo, attempt, action="download")

    def latest_commit(self, repo: Repository, *, auth_token: str | None = None) -> str:
        return self._first_success(
            repo,
            lambda fetcher: fetcher.fetch_latest_commit(repo, auth_token=auth_token),
            action="commit lookup",
        )

    def close(self) -> None:
        """Release resources the fetchers hold (e.g. HTTP sessions they created)."""
        for fetcher in self.fetchers:
            close = getattr(fetcher, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> FetchChain:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _first_success(self, repo: Repository, attempt: Callable[[Fetcher], T], *, action: str) -> T:
        from .errors import CompositeFetchError

        failures: list[tuple[str, BaseException]] = []
        for i, fetcher in enumerate(self.fetchers):
            try:
                return attempt(fetcher)
            except Exception as e:
                failures.append((fetcher.label, e))
                logger.debug("%s %s of %s failed: %s", fetcher.label, action, repo.slug, e)
                if i + 1 < len(self.fetchers):
                    logger.warning(
                        "Standard %s failed for %s, trying %s fallback...",
                        action,
                        repo.slug,
                        self.fetchers[i + 1].label,
                    )
        raise CompositeFetchError(repo.slug, failures) from failures[-1][1]
