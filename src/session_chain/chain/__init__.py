"""Session chain subpackage.

Provides the components that create, link, traverse, and delete chains of
follow-up interview sessions.

Public surface
--------------
- OwnershipGuard      — verify a requester owns a session
- ChainLinker         — create sessions, optionally as a follow-up
- CascadeDeleter      — delete one session or a whole chain atomically
- ChainReconstructor  — rebuild ordered chains and list spaces
- LinkResult, DeleteResult, ChainResult, SpaceSummary — operation results
"""
from __future__ import annotations

from session_chain.chain.deleter import CascadeDeleter, DeleteResult
from session_chain.chain.guard import OwnershipGuard
from session_chain.chain.linker import ChainLinker, LinkResult
from session_chain.chain.reconstructor import ChainReconstructor, ChainResult, SpaceSummary

__all__ = [
    "CascadeDeleter",
    "ChainLinker",
    "ChainReconstructor",
    "ChainResult",
    "DeleteResult",
    "LinkResult",
    "OwnershipGuard",
    "SpaceSummary",
]
