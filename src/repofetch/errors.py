"""Typed fetch errors carrying a stable code, an optional hint, and context."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum


class ErrorCode(StrEnum):
    FETCH = "E_FETCH"
    GIT_NOT_FOUND = "E_GIT_NOT_FOUND"
    GIT_COMMAND = "E_GIT_COMMAND"
    CLONE = "E_CLONE"
    HASH_RESOLUTION = "E_HASH_RESOLUTION"
    ARCHIVE = "E_ARCHIVE"
    REMOTE_REF_NOT_FOUND = "E_REMOTE_REF_NOT_FOUND"
    HTTP = "E_HTTP"
    EXTRACT = "E_EXTRACT"
    COMPOSITE = "E_COMPOSITE"


class FetchError(Exception):
    """Base error for every failure raised by repofetch."""

    default_code = ErrorCode.FETCH

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = self.default_code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v:
                parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class GitNotFoundError(FetchError):
    default_code = ErrorCode.GIT_NOT_FOUND


class GitCommandError(FetchError):
    default_code = ErrorCode.GIT_COMMAND


class CloneError(GitCommandError):
    default_code = ErrorCode.CLONE


class HashResolutionError(GitCommandError):
    default_code = ErrorCode.HASH_RESOLUTION


class ArchiveError(GitCommandError):
    default_code = ErrorCode.ARCHIVE


class RemoteRefNotFoundError(FetchError):
    default_code = ErrorCode.REMOTE_REF_NOT_FOUND


class HttpFetchError(FetchError):
    default_code = ErrorCode.HTTP


class ExtractError(FetchError):
    default_code = ErrorCode.EXTRACT


class CompositeFetchError(FetchError):
    """Every fetcher in a chain failed. The message embeds each failure verbatim."""

    default_code = ErrorCode.COMPOSITE

    def __init__(
        self,
        slug: str,
        failures: Sequence[tuple[str, BaseException]],
    ) -> None:
        self.slug = slug
        self.failures = list(failures)
        lines = [f"Failed to download repository {slug}."]
        for i, (label, error) in enumerate(self.failures):
            tier = "Primary" if i == 0 else "Fallback"
            lines.append(f"{tier} method error ({label}): {error}")
        super().__init__("\n".join(lines), context={"repository": slug})


__all__ = [
    "ArchiveError",
    "CloneError",
    "CompositeFetchError",
    "ErrorCode",
    "ExtractError",
    "FetchError",
    "GitCommandError",
    "GitNotFoundError",
    "HashResolutionError",
    "HttpFetchError",
    "RemoteRefNotFoundError",
]
