from __future__ import annotations

import io
import os
import shutil
import subprocess
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import pytest

from repofetch.core import ByteStream, HostConfig, Tarball

TEMPLATE_FILES: dict[str, str] = {
    "README.md": "# templates\n",
    "vanilla/basic/package.json": '{\n  "name": "vanilla-basic"\n}\n',
    "vanilla/basic/index.html": "<div id='root'></div>\n",
    "vanilla/basic/src/index.tsx": "export default 1;\n",
    "vanilla/basic/src/App.tsx": "export const App = () => null;\n",
    "ts/minimal/package.json": '{\n  "name": "ts-minimal"\n}\n',
}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-network",
        action="store_true",
        default=False,
        help="Run tests that talk to github.com.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-network"):
        return
    skip_network = pytest.mark.skip(reason="needs --run-network")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)


@pytest.fixture(autouse=True)
def _ensure_github_token(monkeypatch: pytest.MonkeyPatch) -> None:
    """Load ~/.github-token into GITHUB_TOKEN when unset, to avoid API rate limits."""
    if os.environ.get("GITHUB_TOKEN"):
        return
    token_path = Path.home() / ".github-token"
    try:
        token = token_path.read_text().strip()
    except OSError:
        token = ""
    if token:
        monkeypatch.setenv("GITHUB_TOKEN", token)


def run_git(argv: list[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *argv],
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise RuntimeError(f"git {' '.join(argv)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()


def _write(p: Path, content: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


@dataclass(frozen=True)
class LocalGitHost:
    """A directory of git repositories served to the fallback fetcher over file://."""

    root: Path
    host: HostConfig
    main_commit: str
    next_commit: str

    @property
    def repo_dir(self) -> Path:
        return self.root / "solidjs" / "templates.git"


@pytest.fixture
def git_host(tmp_path: Path) -> LocalGitHost:
    """
    `solidjs/templates` as a local repository with two branches.

    `main` holds TEMPLATE_FILES; `next` adds one more commit on top.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = tmp_path / "host"
    repo = root / "solidjs" / "templates.git"
    repo.mkdir(parents=True)
    run_git(["init", "--quiet"], cwd=repo)
    run_git(["checkout", "--quiet", "-b", "main"], cwd=repo)
    run_git(["config", "user.email", "repofetch@example.com"], cwd=repo)
    run_git(["config", "user.name", "repofetch tests"], cwd=repo)
    run_git(["config", "commit.gpgsign", "false"], cwd=repo)
    for rel, content in TEMPLATE_FILES.items():
        _write(repo / rel, content)
    run_git(["add", "."], cwd=repo)
    run_git(["commit", "--quiet", "-m", "initial"], cwd=repo)
    main_commit = run_git(["rev-parse", "HEAD"], cwd=repo)

    run_git(["checkout", "--quiet", "-b", "next"], cwd=repo)
    _write(repo / "vanilla" / "basic" / "CHANGELOG.md", "next\n")
    run_git(["add", "."], cwd=repo)
    run_git(["commit", "--quiet", "-m", "next"], cwd=repo)
    next_commit = run_git(["rev-parse", "HEAD"], cwd=repo)
    run_git(["checkout", "--quiet", "main"], cwd=repo)

    host = HostConfig(
        source="github",
        base_url=root.as_uri(),
        api_url="http://127.0.0.1:9/unused",
        git_username="x-access-token",
        token_env="REPOFETCH_TEST_TOKEN",
    )
    return LocalGitHost(root=root, host=host, main_commit=main_commit, next_commit=next_commit)


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Parent directory for fallback workspaces, so tests can assert nothing is left behind."""
    path = tmp_path / "workspaces"
    path.mkdir()
    return path


def build_tarball_bytes(
    files: dict[str, str], *, prefix: str, symlinks: dict[str, str] | None = None
) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for rel, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name=f"{prefix}{rel}" if prefix else rel)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for rel, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name=f"{prefix}{rel}" if prefix else rel)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buf.getvalue()


@pytest.fixture
def make_tarball() -> Callable[..., Tarball]:
    """Factory for in-memory tarballs shaped like provider downloads."""

    def _make(
        files: dict[str, str] | None = None,
        *,
        prefix: str = "solidjs-templates-abc1234/",
        name: str = "solidjs-templates-abc1234.tar.gz",
        chunk_size: int = 512,
        symlinks: dict[str, str] | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> Tarball:
        payload = build_tarball_bytes(
            TEMPLATE_FILES if files is None else files, prefix=prefix, symlinks=symlinks
        )
        chunks = [payload[i : i + chunk_size] for i in range(0, len(payload), chunk_size)]
        return Tarball(name=name, body=ByteStream(chunks, on_close=on_close))

    return _make


def relative_files(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}
