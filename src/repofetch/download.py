from __future__ import annotations

from pathlib import Path

from .adapters.git import GitArchiveFetcher
from .core import DownloadOptions, Fetcher, FetchChain, HostConfig, Repository
from .defaults import DEFAULT_SOURCE, LIBRARY_STARTER
from .util import resolve_host


def primary_fetcher_for(host: HostConfig) -> Fetcher:
    if host.source == "gitlab":
        from .adapters.gitlab import GitLabTarballFetcher

        return GitLabTarballFetcher(host)
    from .adapters.github import GitHubTarballFetcher

    return GitHubTarballFetcher(host)


def fetchers_for(host: HostConfig, mode: str = "auto") -> list[Fetcher]:
    """`auto`: the tarball API, then a local shallow clone. `api`/`git`: one tier only."""
    if mode == "api":
        return [primary_fetcher_for(host)]
    if mode == "git":
        return [GitArchiveFetcher(host)]
    if mode != "auto":
        raise ValueError(f"Unknown fetch mode {mode!r}")
    return [primary_fetcher_for(host), GitArchiveFetcher(host)]


def default_chain(source: str = DEFAULT_SOURCE, base_url: str | None = None) -> FetchChain:
    return FetchChain(fetchers_for(resolve_host(source, base_url)))


def download_repo(
    options: DownloadOptions,
    source: str = DEFAULT_SOURCE,
    base_url: str | None = None,
) -> Fetcher:
    """
    Download `options.repo` into `options.dest`.

    Returns the fetcher that succeeded. Raises CompositeFetchError, carrying
    both underlying messages, only when the API download and the git fallback
    have both failed.
    """
    with default_chain(source, base_url) as chain:
        return chain.download(options)


def create_library(destination: str | Path, *, auth_token: str | None = None) -> Fetcher:
    owner, name = LIBRARY_STARTER
    return download_repo(
        DownloadOptions(repo=Repository(owner=owner, name=name), dest=destination, auth_token=auth_token)
    )
