"""Fallback fetcher: shallow clone + `git archive`, shaped like a provider tarball."""

from __future__ import annotations

import base64
import logging
import os
import re
import shutil
import subprocess
import tempfile
from collections.abc import Iterator
from pathlib import Path

from ..core import ByteStream, HostConfig, Repository, Tarball
from ..defaults import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_GIT_EXECUTABLE,
    HEAD_PLACEHOLDER,
    SHORT_HASH_LENGTH,
    WORKSPACE_ARCHIVE_NAME,
    WORKSPACE_CLONE_DIR,
    WORKSPACE_PREFIX,
)
from ..errors import (
    ArchiveError,
    CloneError,
    GitCommandError,
    GitNotFoundError,
    HashResolutionError,
    RemoteRefNotFoundError,
)
from ..types import TCommitHash

logger = logging.getLogger(__name__)

_LEADING_HASH = re.compile(r"^([a-f0-9]+)")


def _remove_workspace(path: Path) -> None:
    # Safe to call twice: a missing directory is not an error.
    shutil.rmtree(path, ignore_errors=True)


def _iter_file(path: Path, chunk_size: int) -> Iterator[bytes]:
    with path.open("rb") as f:
        while chunk := f.read(chunk_size):
            yield chunk


class GitArchiveFetcher:
    label = "git"

    def __init__(
        self,
        host: HostConfig,
        *,
        git: str = DEFAULT_GIT_EXECUTABLE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        tmp_dir: str | Path | None = None,
    ) -> None:
        self.host = host
        self.git = git
        self.chunk_size = chunk_size
        self.tmp_dir = tmp_dir

    def fetch_tarball(
        self, repo: Repository, *, ref: str | None = None, auth_token: str | None = None
    ) -> Tarball:
        branch = ref or repo.branch
        workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.tmp_dir))
        clone_dir = workspace / WORKSPACE_CLONE_DIR
        archive_path = workspace / WORKSPACE_ARCHIVE_NAME
        try:
            # `git archive --remote` is not served by GitHub, so clone shallowly and archive locally.
            clone_args = ["clone", "--quiet", "--depth", "1"]
            if branch:
                clone_args += ["--branch", branch]
            clone_args += ["--", self.host.clone_url(repo), str(clone_dir)]
            logger.debug("Cloning %s into %s", repo.slug, clone_dir)
            self._run_git(clone_args, auth_token=auth_token, error=CloneError)

            short_hash = self._short_hash(clone_dir, repo)

            # Same top-level directory the GitHub/GitLab tarball endpoints use.
            stem = f"{repo.owner}-{repo.name}-{short_hash}"
            self._run_git(
                [
                    "archive",
                    "--format=tar.gz",
                    f"--prefix={stem}/",
                    "-o",
                    str(archive_path),
                    "HEAD",
                ],
                cwd=clone_dir,
                error=ArchiveError,
            )
            chunks = _iter_file(archive_path, self.chunk_size)
        except BaseException:
            _remove_workspace(workspace)
            raise

        def release() -> None:
            logger.debug("Removing workspace %s", workspace)
            _remove_workspace(workspace)

        return Tarball(name=f"{stem}.tar.gz", body=ByteStream(chunks, on_close=release))

    def _short_hash(self, clone_dir: Path, repo: Repository) -> str:
        """Short commit id for naming; degrades to `HEAD` rather than failing the fetch."""
        try:
            commit = self._run_git(
                ["log", "-1", "--format=%H"], cwd=clone_dir, error=HashResolutionError
            )
        except HashResolutionError as e:
            logger.warning("Could not resolve commit of %s, naming archive HEAD: %s", repo.slug, e)
            return HEAD_PLACEHOLDER
        return commit[:SHORT_HASH_LENGTH] or HEAD_PLACEHOLDER

    def fetch_latest_commit(
        self, repo: Repository, *, auth_token: str | None = None
    ) -> TCommitHash:
        url = self.host.clone_url(repo)
        ref = repo.branch or "HEAD"
        # `--refs` drops HEAD from the listing, so it is only used for named refs.
        args = ["ls-remote", url, ref] if ref == "HEAD" else ["ls-remote", "--refs", url, ref]
        output = self._run_git(args, auth_token=auth_token, error=GitCommandError)
        match = _LEADING_HASH.match(output)
        if not match:
            raise RemoteRefNotFoundError(
                f"Could not fetch latest commit for {repo.slug}",
                hint="Ensure the repository and branch exist and are reachable.",
                context={"repository": repo.slug, "ref": ref},
            )
        return match.group(1)

    def _auth_config(self, auth_token: str | None) -> list[str]:
        token = auth_token or os.getenv(self.host.token_env)
        if not token:
            return []
        creds = base64.b64encode(f"{self.host.git_username}:{token}".encode()).decode("ascii")
        return ["-c", f"http.extraHeader=Authorization: Basic {creds}"]

    def _run_git(
        self,
        argv: list[str],
        *,
        cwd: Path | None = None,
        auth_token: str | None = None,
        error: type[GitCommandError] = GitCommandError,
    ) -> str:
        command = [self.git, *self._auth_config(auth_token), *argv]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=env,
                check=False,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise GitNotFoundError(
                f"Git executable {self.git!r} was not found.",
                hint="Install git or put it on PATH to use the git fallback.",
                context={"executable": self.git},
            ) from e
        if completed.returncode != 0:
            raise error(
                f"git {argv[0]} failed: {completed.stderr.strip() or completed.returncode}",
                hint="Inspect repository/branch inputs, network access, and credentials.",
                context={"argv": " ".join(argv), "cwd": str(cwd or "")},
            )
        return completed.stdout.strip()
