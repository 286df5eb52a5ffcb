import re
from typing import Annotated, Literal, NewType

from annotated_types import MinLen, Predicate

_HEX = re.compile(r"^[a-f0-9]+$")
_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


def _is_commit_hash(value) -> bool:
    if not isinstance(value, str):
        return False
    return len(value) >= 7 and bool(_HEX.match(value))


def _is_path_segment(value) -> bool:
    if not isinstance(value, str):
        return False
    return value not in {".", ".."} and bool(_SEGMENT.match(value))


TSource = Literal["github", "gitlab"]

TOwner = Annotated[NewType("TOwner", str), MinLen(1), Predicate(_is_path_segment)]
TRepoName = Annotated[NewType("TRepoName", str), MinLen(1), Predicate(_is_path_segment)]

TCommitHash = Annotated[NewType("TCommitHash", str), Predicate(_is_commit_hash)]
"""
A lowercase hexadecimal commit id, at least 7 characters long.
Full ids come from `ls-remote` and the commit APIs; the 7-character short form
is what archive names and path prefixes use.
"""
