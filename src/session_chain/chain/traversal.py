"""Bounded pointer walking shared by chain readers.

Persisted ``parent_id``/``child_id`` values are plain references that may
point at missing records, at the session itself, or around a cycle.  Every
walk therefore carries a visited-id set and a hard hop limit, and stops at
the first broken link instead of raising.
"""
from __future__ import annotations

from typing import Callable, Literal

from session_chain.session.record import SessionRecord

Pointer = Literal["parent_id", "child_id"]

_BACK_POINTER: dict[str, str] = {"parent_id": "child_id", "child_id": "parent_id"}


def follow_pointers(
    start: SessionRecord,
    pointer: Pointer,
    resolve: Callable[[str], SessionRecord | None],
    *,
    max_depth: int,
    visited: set[str],
    owner_id: str | None = None,
) -> tuple[list[SessionRecord], list[str]]:
    """Follow ``pointer`` from ``start`` and return the records reached.

    Parameters
    ----------
    start:
        Record the walk begins at.  It is not included in the result.
    pointer:
        ``"parent_id"`` to walk towards the root, ``"child_id"`` towards
        the head.
    resolve:
        Returns the record for an id, or None when it does not exist.
    max_depth:
        Maximum number of hops.
    visited:
        Ids already collected.  Updated in place, so two walks sharing the
        set never collect the same record twice.
    owner_id:
        When given, the walk stops before any record of another owner.

    Returns
    -------
    tuple[list[SessionRecord], list[str]]
        Records in walk order (nearest first) and a description of every
        inconsistency met on the way.
    """
    collected: list[SessionRecord] = []
    problems: list[str] = []
    back_pointer = _BACK_POINTER[pointer]
    cursor = start

    while True:
        next_id = getattr(cursor, pointer)
        if next_id is None:
            break
        if next_id in visited:
            problems.append(
                f"cycle: {cursor.id!r}.{pointer} points back to {next_id!r}"
            )
            break
        if len(collected) >= max_depth:
            problems.append(
                f"depth limit {max_depth} reached following {pointer} from {start.id!r}"
            )
            break

        following = resolve(next_id)
        if following is None:
            problems.append(f"dangling: {cursor.id!r}.{pointer} -> missing {next_id!r}")
            break
        if owner_id is not None and following.owner_id != owner_id:
            problems.append(
                f"foreign owner: {cursor.id!r}.{pointer} -> {next_id!r} "
                f"owned by {following.owner_id!r}"
            )
            break
        if getattr(following, back_pointer) != cursor.id:
            problems.append(
                f"mismatch: {cursor.id!r}.{pointer} -> {next_id!r} but "
                f"{next_id!r}.{back_pointer} -> {getattr(following, back_pointer)!r}"
            )

        visited.add(following.id)
        collected.append(following)
        cursor = following

    return collected, problems
