#!/usr/bin/env python3
"""Example: Quickstart — session-chain

Minimal working example: run an interview, schedule two follow-ups against
it, then read the chain back from any stage.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install session-chain
"""
from __future__ import annotations

import session_chain
from session_chain import InMemoryStore, LinkConflictError, SessionChainService


def main() -> None:
    print(f"session-chain version: {session_chain.__version__}")

    service = SessionChainService(InMemoryStore())
    owner = "candidate-42"
    job = {"company": "Acme", "role": "Backend Engineer"}

    # Stage 1: the first interview
    first = service.create_session({"job_context": job, "persona": "Ava"}, owner)
    service.update_payload(first.session_id, owner, {"status": "completed", "report": {"score": 6}})

    # Stages 2 and 3: follow-ups, each against the latest session
    second = service.create_session({"job_context": job}, owner, parent_id=first.session_id)
    third = service.create_session({"job_context": job}, owner, parent_id=second.session_id)

    chain = service.chain_for_session(third.session_id, owner)
    print(f"\nChain ({len(chain)} sessions):")
    for stage, record in enumerate(chain, start=1):
        print(f"  stage {stage}: {record.id} status={record.status}")

    # A follow-up on an old stage is refused
    try:
        service.create_session({"job_context": job}, owner, parent_id=first.session_id)
    except LinkConflictError as exc:
        print(f"\nRefused: {exc.user_message}")

    for space in service.list_spaces(owner):
        print(f"\nSpace head={space.head.id} root={space.root_id} stage={space.stage}")

    result = service.delete_session(second.session_id, owner, cascade=True)
    print(f"\nCascade delete removed {len(result.deleted_ids)} session(s)")


if __name__ == "__main__":
    main()
