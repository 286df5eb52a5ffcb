from __future__ import annotations

import logging
import posixpath
import tarfile
from pathlib import Path, PurePosixPath

from .core import Tarball
from .errors import ExtractError

logger = logging.getLogger(__name__)


def _relative_member_path(name: str, subdir_parts: tuple[str, ...]) -> PurePosixPath | None:
    """
    Map an archive member name to its path under the destination.

    Hosting-provider tarballs (and the git fallback, which mimics them) wrap
    everything in a single `<owner>-<name>-<hash>/` directory, which is dropped.
    Returns None for members outside `subdir_parts` and for the roots themselves.
    """
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ExtractError(
            "Refusing to extract archive member outside the destination.",
            context={"member": name},
        )
    parts = path.parts[1:]
    if parts[: len(subdir_parts)] != subdir_parts:
        return None
    parts = parts[len(subdir_parts) :]
    if not parts:
        return None
    return PurePosixPath(*parts)


def _symlink_stays_inside(name: str, linkname: str, subdir_parts: tuple[str, ...]) -> bool:
    """Whether a symlink at archive member `name` resolves inside the extracted slice."""
    if PurePosixPath(linkname).is_absolute():
        return False
    parent = PurePosixPath(name).parts[1:-1]
    target = posixpath.normpath(posixpath.join("", *parent, linkname))
    if target == ".." or target.startswith("../"):
        return False
    if target == ".":
        return not subdir_parts
    return PurePosixPath(target).parts[: len(subdir_parts)] == subdir_parts


def extract_tarball(tarball: Tarball, dest: Path, *, subdir: str | None = None) -> Path:
    dest = Path(dest)
    subdir_parts = PurePosixPath(subdir.strip("/")).parts if subdir and subdir.strip("/") else ()
    dest.mkdir(parents=True, exist_ok=True)
    extracted = 0
    logger.debug("Extracting %s into %s (subdir=%r)", tarball.name, dest, subdir)
    with tarball.body as body:
        try:
            with tarfile.open(fileobj=body, mode="r|gz") as tar:
                for member in tar:
                    rel = _relative_member_path(member.name, subdir_parts)
                    if rel is None:
                        continue
                    changes: dict[str, str] = {"name": str(rel)}
                    if member.islnk():
                        linked = _relative_member_path(member.linkname, subdir_parts)
                        if linked is None:
                            logger.debug("Skipping hard link %s leaving %r", member.name, subdir)
                            continue
                        changes["linkname"] = str(linked)
                    elif member.issym() and not _symlink_stays_inside(
                        member.name, member.linkname, subdir_parts
                    ):
                        logger.debug(
                            "Skipping symlink %s -> %s leaving %r",
                            member.name,
                            member.linkname,
                            subdir,
                        )
                        continue
                    tar.extract(member.replace(**changes, deep=False), path=dest, filter="data")
                    extracted += 1
        except (tarfile.TarError, EOFError, OSError) as e:
            raise ExtractError(
                f"Could not extract {tarball.name}: {e}",
                context={"archive": tarball.name, "dest": str(dest)},
            ) from e
    if subdir_parts and not extracted:
        raise ExtractError(
            f"Subdirectory {subdir!r} not found in {tarball.name}.",
            hint="Check the subdirectory path against the repository layout.",
            context={"archive": tarball.name, "subdir": subdir or ""},
        )
    return dest
