from __future__ import annotations

import logging
import sys

from .cli_common import Context, parse_common_args
from .core import DownloadOptions, FetchChain, StdoutWriter, Writer
from .defaults import DEFAULT_SOURCE
from .download import fetchers_for
from .errors import FetchError
from .util import default_destination, detect_source, parse_repository, resolve_host

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    level = {-1: logging.ERROR, 0: logging.WARNING, 1: logging.DEBUG}[verbosity]
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_chain(ctx: Context) -> FetchChain:
    source = ctx.source or detect_source(ctx.repository) or DEFAULT_SOURCE
    return FetchChain(fetchers_for(resolve_host(source, ctx.base_url), ctx.mode))


def main(*, argv: list[str] | None = None, writer: Writer | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    ctx: Context = parse_common_args(argv)
    _configure_logging(ctx.verbosity)
    out_writer = writer or StdoutWriter()

    try:
        repo = parse_repository(ctx.repository, branch=ctx.branch, subdir=ctx.subdir)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        with _build_chain(ctx) as chain:
            if ctx.latest_commit:
                commit = chain.latest_commit(repo, auth_token=ctx.token)
                out_writer.write(commit + "\n")
                return 0
            options = DownloadOptions(
                repo=repo,
                dest=ctx.dest or default_destination(repo),
                auth_token=ctx.token,
            )
            fetcher = chain.download(options)
    except FetchError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    logger.info("Fetched %s into %s via %s", repo.slug, options.resolve_dest(), fetcher.label)
    out_writer.write(f"{options.resolve_dest()}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
