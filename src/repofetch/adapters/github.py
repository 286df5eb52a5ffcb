from __future__ import annotations

import logging
import os
from typing import Dict, Optional

import requests

from ..core import HostConfig, Repository, Tarball
from . import http

logger = logging.getLogger(__name__)


def _auth_headers(token: Optional[str]) -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class GitHubTarballFetcher:
    """Downloads repository tarballs through the GitHub REST API."""

    label = "github"

    def __init__(self, host: HostConfig, session: Optional[requests.Session] = None) -> None:
        self.host = host
        # A caller-provided session stays open; one created here is closed by close().
        self._owns_session = session is None
        self._session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def _headers(self, auth_token: Optional[str]) -> Dict[str, str]:
        return _auth_headers(auth_token or os.getenv(self.host.token_env))

    def _repo_url(self, repo: Repository) -> str:
        return f"{self.host.api_url}/repos/{repo.owner}/{repo.name}"

    def fetch_default_branch(self, repo: Repository, *, auth_token: Optional[str] = None) -> str:
        r = http.get(self._session, self._repo_url(repo), repo=repo, headers=self._headers(auth_token))
        return r.json()["default_branch"]

    def fetch_tarball(
        self, repo: Repository, *, ref: Optional[str] = None, auth_token: Optional[str] = None
    ) -> Tarball:
        ref = ref or repo.branch
        # Without a ref the endpoint serves the default branch.
        url = f"{self._repo_url(repo)}/tarball" + (f"/{ref}" if ref else "")
        logger.debug("Downloading %s", url)
        r = http.get(self._session, url, repo=repo, headers=self._headers(auth_token), stream=True)
        # Placeholder only when the response carries no Content-Disposition filename.
        name = http.tarball_filename(r, f"{repo.owner}-{repo.name}-{ref or 'HEAD'}.tar.gz")
        return Tarball(name=name, body=http.response_stream(r))

    def fetch_latest_commit(self, repo: Repository, *, auth_token: Optional[str] = None) -> str:
        ref = repo.branch or self.fetch_default_branch(repo, auth_token=auth_token)
        r = http.get(
            self._session,
            f"{self._repo_url(repo)}/commits/{ref}",
            repo=repo,
            headers=self._headers(auth_token),
        )
        return r.json()["sha"]
