from __future__ import annotations

import dataclasses
from urllib.parse import urlparse

from typeguard import typechecked

from .core import HostConfig, Repository
from .types import _is_path_segment

HOST_URL_PATTERNS: dict[str, tuple[str, ...]] = {
    "github": ("github.com/", "www.github.com/"),
    "gitlab": ("gitlab.com/", "www.gitlab.com/"),
}


def _strip_scheme(token: str) -> str:
    tok = token.strip()
    for prefix in ("git+https://", "https://", "http://"):
        if tok.lower().startswith(prefix):
            return tok[len(prefix) :]
    return tok


def detect_source(token: str) -> str | None:
    """Return 'github' or 'gitlab' when `token` is a URL on one of the public hosts."""
    tok = _strip_scheme(token).lower()
    for source, patterns in HOST_URL_PATTERNS.items():
        if any(tok.startswith(p) for p in patterns):
            return source
    return None


@typechecked
def parse_repository(
    spec: str, *, branch: str | None = None, subdir: str | None = None
) -> Repository:
    """
    Parse a repository identifier into a Repository.

    Accepted forms (explicit `branch`/`subdir` arguments win over derived ones):
    - owner/name
    - owner/name/sub/dir
    - https://github.com/<owner>/<name>[.git]
    - https://github.com/<owner>/<name>/tree/<branch>/sub/dir
    - https://gitlab.com/<owner>/<name>/-/tree/<branch>/sub/dir

    Branch names containing '/' cannot be told apart from the subdirectory in
    URL form; pass `branch` explicitly for those.
    """
    raw = spec.strip()
    if detect_source(raw) is not None or "://" in raw:
        path = urlparse(raw if "://" in raw else f"https://{raw}").path
    else:
        path = raw
    segments = [s for s in path.strip("/").split("/") if s]
    if len(segments) < 2:
        msg = f"Unrecognized repository: {spec!r} (expected owner/name)"
        raise ValueError(msg)
    owner, name = segments[0], segments[1].removesuffix(".git")
    if not (_is_path_segment(owner) and _is_path_segment(name)):
        msg = f"Invalid owner or repository name in {spec!r}"
        raise ValueError(msg)
    rest = segments[2:]
    derived_branch = None
    if rest and rest[0] == "-":
        rest = rest[1:]
    if rest and rest[0] in {"tree", "blob"}:
        if len(rest) < 2:
            msg = f"Missing branch after /{rest[0]}/ in {spec!r}"
            raise ValueError(msg)
        derived_branch = rest[1]
        rest = rest[2:]
    derived_subdir = "/".join(rest) or None
    return Repository(
        owner=owner,
        name=name,
        branch=branch or derived_branch,
        subdir=(subdir.strip("/") or None) if subdir else derived_subdir,
    )


@typechecked
def resolve_host(source: str, base_url: str | None = None) -> HostConfig:
    """Return the host configuration for `source`, optionally pointed at a self-hosted instance."""
    from .defaults import DEFAULT_HOSTS, SELF_HOSTED_API_SUFFIX

    try:
        host = DEFAULT_HOSTS[source]
    except KeyError:
        msg = f"Unknown source {source!r}; expected one of {sorted(DEFAULT_HOSTS)}"
        raise ValueError(msg) from None
    if not base_url:
        return host
    base = base_url.rstrip("/")
    if base == host.base_url:
        return host
    return dataclasses.replace(host, base_url=base, api_url=base + SELF_HOSTED_API_SUFFIX[source])


def default_destination(repo: Repository) -> str:
    if repo.subdir:
        return repo.subdir.rstrip("/").rsplit("/", 1)[-1]
    return repo.name
