"""Chain reconstruction for history and analytics views.

Works purely on an already-loaded pool of one owner's sessions.  Lookups are
by id, never by position, so the result does not depend on pool order.

Classes
-------
- ChainResult         — ordered chain plus any inconsistencies found
- SpaceSummary        — one active chain ("Space") as shown on a dashboard
- ChainReconstructor  — rebuild chains and list spaces from a pool
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from session_chain.chain.traversal import follow_pointers
from session_chain.config import ChainConfig
from session_chain.errors import InconsistentChainError
from session_chain.session.record import SessionRecord

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    """An ordered chain, root first.

    Parameters
    ----------
    start_id:
        The chain member the reconstruction started from.
    sessions:
        Chain members ordered root → head.  May be partial when
        ``warnings`` is non-empty.
    warnings:
        Human-readable descriptions of broken links, cycles, or depth
        limits met during traversal.
    """

    start_id: str
    sessions: list[SessionRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        return [session.id for session in self.sessions]

    @property
    def root(self) -> SessionRecord | None:
        return self.sessions[0] if self.sessions else None

    @property
    def head(self) -> SessionRecord | None:
        return self.sessions[-1] if self.sessions else None

    @property
    def is_consistent(self) -> bool:
        return not self.warnings

    def raise_if_inconsistent(self) -> None:
        """Raise ``InconsistentChainError`` when any warning was recorded."""
        if self.warnings:
            raise InconsistentChainError(self.start_id, self.warnings)

    def __len__(self) -> int:
        return len(self.sessions)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(self.sessions)


@dataclass
class SpaceSummary:
    """The active (head) session of one chain.

    Parameters
    ----------
    head:
        The latest session of the chain.
    root_id:
        Id of the earliest reachable ancestor.
    stage:
        1-based position of ``head`` in its chain.
    """

    head: SessionRecord
    root_id: str
    stage: int

    @property
    def is_space(self) -> bool:
        """True when the chain has more than one session."""
        return self.stage > 1


class ChainReconstructor:
    """Rebuild ordered chains from a pool of sessions.

    Parameters
    ----------
    config:
        Supplies ``max_depth``, the hop limit applied in each direction.
    """

    def __init__(self, config: ChainConfig | None = None) -> None:
        self._config = config or ChainConfig()

    def reconstruct(self, start_id: str, pool: Iterable[SessionRecord]) -> ChainResult:
        """Return the chain containing ``start_id`` ordered root → head.

        Broken links truncate the walk in that direction; the partial chain
        is returned with a warning instead of raising.

        Parameters
        ----------
        start_id:
            Any member of the chain.
        pool:
            The owner's sessions, in any order.

        Returns
        -------
        ChainResult
            Empty (with a warning) when ``start_id`` is not in ``pool``.
        """
        index = {record.id: record for record in pool}
        start = index.get(start_id)
        if start is None:
            result = ChainResult(start_id=start_id, warnings=[f"missing start {start_id!r}"])
            logger.warning("ChainReconstructor: start session %r not in pool", start_id)
            return result

        visited = {start.id}
        ancestors, back_problems = follow_pointers(
            start, "parent_id", index.get, max_depth=self._config.max_depth, visited=visited
        )
        descendants, forward_problems = follow_pointers(
            start, "child_id", index.get, max_depth=self._config.max_depth, visited=visited
        )

        result = ChainResult(
            start_id=start_id,
            sessions=[*reversed(ancestors), start, *descendants],
            warnings=[*back_problems, *forward_problems],
        )
        for problem in result.warnings:
            logger.warning("ChainReconstructor: chain of %r truncated: %s", start_id, problem)
        return result

    def spaces(self, pool: Iterable[SessionRecord]) -> list[SpaceSummary]:
        """Summarise every chain in ``pool`` by its head session.

        A head is any session that no other pool member names as its
        parent.  Results are ordered newest head first.
        """
        index = {record.id: record for record in pool}
        parent_ids = {r.parent_id for r in index.values() if r.parent_id is not None}

        summaries: list[SpaceSummary] = []
        for record in index.values():
            if record.id in parent_ids:
                continue
            ancestors, problems = follow_pointers(
                record,
                "parent_id",
                index.get,
                max_depth=self._config.max_depth,
                visited={record.id},
            )
            for problem in problems:
                logger.debug("ChainReconstructor: space of %r: %s", record.id, problem)
            root_id = ancestors[-1].id if ancestors else record.id
            summaries.append(SpaceSummary(head=record, root_id=root_id, stage=len(ancestors) + 1))

        summaries.sort(key=lambda s: (s.head.created_at, s.head.id), reverse=True)
        return summaries
