from __future__ import annotations

import logging
import os
from typing import Dict, Optional
from urllib.parse import quote

import requests

from ..core import HostConfig, Repository, Tarball
from . import http

logger = logging.getLogger(__name__)


class GitLabTarballFetcher:
    """Downloads repository archives through the GitLab v4 API (gitlab.com or self-hosted)."""

    label = "gitlab"

    def __init__(self, host: HostConfig, session: Optional[requests.Session] = None) -> None:
        self.host = host
        # A caller-provided session stays open; one created here is closed by close().
        self._owns_session = session is None
        self._session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def _headers(self, auth_token: Optional[str]) -> Dict[str, str]:
        token = auth_token or os.getenv(self.host.token_env)
        return {"PRIVATE-TOKEN": token} if token else {}

    def _project_url(self, repo: Repository) -> str:
        # Projects are addressed by their URL-encoded full path.
        return f"{self.host.api_url}/projects/{quote(repo.slug, safe='')}"

    def fetch_default_branch(self, repo: Repository, *, auth_token: Optional[str] = None) -> str:
        r = http.get(self._session, self._project_url(repo), repo=repo, headers=self._headers(auth_token))
        return r.json()["default_branch"]

    def fetch_tarball(
        self, repo: Repository, *, ref: Optional[str] = None, auth_token: Optional[str] = None
    ) -> Tarball:
        ref = ref or repo.branch
        url = f"{self._project_url(repo)}/repository/archive.tar.gz"
        logger.debug("Downloading %s (sha=%s)", url, ref)
        r = http.get(
            self._session,
            url,
            repo=repo,
            params={"sha": ref} if ref else None,
            headers=self._headers(auth_token),
            stream=True,
        )
        # Placeholder only when the response carries no Content-Disposition filename.
        name = http.tarball_filename(r, f"{repo.owner}-{repo.name}-{ref or 'HEAD'}.tar.gz")
        return Tarball(name=name, body=http.response_stream(r))

    def fetch_latest_commit(self, repo: Repository, *, auth_token: Optional[str] = None) -> str:
        ref = repo.branch or self.fetch_default_branch(repo, auth_token=auth_token)
        r = http.get(
            self._session,
            f"{self._project_url(repo)}/repository/commits/{quote(ref, safe='')}",
            repo=repo,
            headers=self._headers(auth_token),
        )
        return r.json()["id"]
