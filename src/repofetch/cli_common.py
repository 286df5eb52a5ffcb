from __future__ import annotations

import argparse
import textwrap
from dataclasses import dataclass
from typing import Literal

from repofetch.defaults import DEFAULT_HOSTS, DEFAULT_SOURCE


@dataclass(slots=True)
class Context:
    repository: str
    dest: str | None = None
    branch: str | None = None
    subdir: str | None = None
    source: str | None = None
    base_url: str | None = None
    token: str | None = None
    mode: Literal["auto", "api", "git"] = "auto"
    latest_commit: bool = False
    verbosity: int = 0


def parse_common_args(argv: list[str] | None = None) -> Context:
    epilog = textwrap.dedent(
        f"""
        REPOSITORY FORMS
        owner/name, owner/name/sub/dir, or a GitHub/GitLab URL such as
        https://github.com/owner/name/tree/main/sub/dir.

        FETCH ORDER
        The host's tarball API is tried first. If it fails, the repository is
        shallow-cloned with the local git executable and archived instead.
        Tokens default to {", ".join(h.token_env for h in DEFAULT_HOSTS.values())}.
        """
    )

    parser = argparse.ArgumentParser(
        prog="repofetch",
        description="Download a template repository (or one of its subdirectories) into a directory",
        add_help=True,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )

    parser.add_argument("repository", type=str, help="Repository to fetch.")
    parser.add_argument(
        "dest",
        type=str,
        nargs="?",
        default=None,
        help="Destination directory. Defaults to the repository (or subdirectory) name.",
    )
    parser.add_argument("-b", "--branch", type=str, default=None, help="Branch or tag to fetch.")
    parser.add_argument(
        "-s",
        "--subdir",
        type=str,
        default=None,
        help="Only extract this subdirectory of the repository.",
    )
    parser.add_argument(
        "--source",
        type=str,
        choices=sorted(DEFAULT_HOSTS),
        default=None,
        help=f"Git host. Inferred from URLs, otherwise {DEFAULT_SOURCE}.",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Base URL of a self-hosted instance (e.g. https://gitlab.example.com).",
    )
    parser.add_argument("--token", type=str, default=None, help="Access token passed to the host.")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--no-fallback",
        action="store_const",
        const="api",
        dest="mode",
        help="Only use the tarball API.",
    )
    mode.add_argument(
        "--git-only",
        action="store_const",
        const="git",
        dest="mode",
        help="Skip the tarball API and clone with git.",
    )
    parser.set_defaults(mode="auto")

    parser.add_argument(
        "--latest-commit",
        action="store_true",
        help="Print the latest commit hash of the branch instead of downloading.",
    )

    noise = parser.add_mutually_exclusive_group()
    noise.add_argument("-v", "--verbose", action="store_const", const=1, dest="verbosity")
    noise.add_argument("-q", "--quiet", action="store_const", const=-1, dest="verbosity")
    parser.set_defaults(verbosity=0)

    args = parser.parse_args(argv)
    return Context(
        repository=args.repository,
        dest=args.dest,
        branch=args.branch,
        subdir=args.subdir,
        source=args.source,
        base_url=args.base_url,
        token=args.token,
        mode=args.mode,
        latest_commit=bool(args.latest_commit),
        verbosity=args.verbosity,
    )
