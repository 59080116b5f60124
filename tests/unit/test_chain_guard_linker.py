"""Unit tests for OwnershipGuard and ChainLinker."""
from __future__ import annotations

import threading

import pytest

from chain_fixtures import OTHER_OWNER, OWNER
from session_chain.chain.guard import OwnershipGuard
from session_chain.chain.linker import ChainLinker, LinkResult
from session_chain.errors import ForbiddenError, LinkConflictError, SessionNotFoundError
from session_chain.storage.base import SessionStore
from session_chain.storage.memory import InMemoryStore

PAYLOAD = {"job_context": {"company": "Acme", "role": "SWE"}, "persona": "Ava"}


@pytest.fixture()
def linker(store: SessionStore) -> ChainLinker:
    return ChainLinker(store)


# ---------------------------------------------------------------------------
# OwnershipGuard
# ---------------------------------------------------------------------------


class TestOwnershipGuard:
    def test_owner_gets_record(self, store: SessionStore, linker: ChainLinker) -> None:
        created = linker.create_linked(PAYLOAD, OWNER)
        assert OwnershipGuard(store).check(created.session_id, OWNER).id == created.session_id

    def test_missing_session_raises_not_found(self, store: SessionStore) -> None:
        with pytest.raises(SessionNotFoundError):
            OwnershipGuard(store).check("ghost", OWNER)

    def test_wrong_owner_raises_forbidden(self, store: SessionStore, linker: ChainLinker) -> None:
        created = linker.create_linked(PAYLOAD, OWNER)
        with pytest.raises(ForbiddenError) as info:
            OwnershipGuard(store).check(created.session_id, OTHER_OWNER)
        assert info.value.owner_id == OTHER_OWNER

    def test_forbidden_is_permission_error(self, store: SessionStore, linker: ChainLinker) -> None:
        created = linker.create_linked(PAYLOAD, OWNER)
        with pytest.raises(PermissionError):
            OwnershipGuard(store).check(created.session_id, OTHER_OWNER)


# ---------------------------------------------------------------------------
# ChainLinker
# ---------------------------------------------------------------------------


class TestChainLinkerRoot:
    def test_root_has_no_pointers(self, store: SessionStore, linker: ChainLinker) -> None:
        result = linker.create_linked(PAYLOAD, OWNER)
        record = store.get(result.session_id)
        assert record.parent_id is None
        assert record.child_id is None
        assert result.parent_updated is False

    def test_result_type(self, linker: ChainLinker) -> None:
        assert isinstance(linker.create_linked(PAYLOAD, OWNER), LinkResult)

    def test_payload_is_passed_through(self, store: SessionStore, linker: ChainLinker) -> None:
        result = linker.create_linked({**PAYLOAD, "transcript": ["hi"]}, OWNER)
        record = store.get(result.session_id)
        assert record.job_context == {"company": "Acme", "role": "SWE"}
        assert record.persona == "Ava"
        assert record.status == "created"
        assert record.model_dump()["transcript"] == ["hi"]

    def test_opaque_fields_accept_any_shape(
        self, store: SessionStore, linker: ChainLinker
    ) -> None:
        payload = {
            "job_context": "Backend engineer at Acme",
            "resume_context": None,
            "persona": {"name": "Ava", "voice": 2},
            "status": 3,
        }
        result = linker.create_linked(payload, OWNER)
        record = store.get(result.session_id)
        assert record.job_context == "Backend engineer at Acme"
        assert record.resume_context is None
        assert record.persona == {"name": "Ava", "voice": 2}
        assert record.status == 3

    def test_ids_are_unique(self, linker: ChainLinker) -> None:
        ids = {linker.create_linked(PAYLOAD, OWNER).session_id for _ in range(5)}
        assert len(ids) == 5

    def test_payload_may_not_set_chain_fields(self, linker: ChainLinker) -> None:
        with pytest.raises(ValueError, match="child_id"):
            linker.create_linked({"child_id": "x"}, OWNER)


class TestChainLinkerFollowUp:
    def test_follow_up_links_both_ways(self, store: SessionStore, linker: ChainLinker) -> None:
        parent = linker.create_linked(PAYLOAD, OWNER)
        child = linker.create_linked(PAYLOAD, OWNER, parent_id=parent.session_id)
        assert child.parent_updated is True
        assert store.get(parent.session_id).child_id == child.session_id
        assert store.get(child.session_id).parent_id == parent.session_id

    def test_second_follow_up_conflicts(self, store: SessionStore, linker: ChainLinker) -> None:
        parent = linker.create_linked(PAYLOAD, OWNER)
        linker.create_linked(PAYLOAD, OWNER, parent_id=parent.session_id)
        with pytest.raises(LinkConflictError) as info:
            linker.create_linked(PAYLOAD, OWNER, parent_id=parent.session_id)
        assert "latest session" in info.value.user_message
        assert len(store.list_for_owner(OWNER)) == 2

    def test_missing_parent(self, store: SessionStore, linker: ChainLinker) -> None:
        with pytest.raises(SessionNotFoundError):
            linker.create_linked(PAYLOAD, OWNER, parent_id="ghost")
        assert store.list_for_owner(OWNER) == []

    def test_foreign_parent_forbidden(self, store: SessionStore, linker: ChainLinker) -> None:
        parent = linker.create_linked(PAYLOAD, OTHER_OWNER)
        with pytest.raises(ForbiddenError):
            linker.create_linked(PAYLOAD, OWNER, parent_id=parent.session_id)
        assert store.get(parent.session_id).child_id is None
        assert store.list_for_owner(OWNER) == []

    def test_mutual_consistency_along_a_chain(
        self, store: SessionStore, linker: ChainLinker
    ) -> None:
        current = linker.create_linked(PAYLOAD, OWNER).session_id
        for _ in range(5):
            current = linker.create_linked(PAYLOAD, OWNER, parent_id=current).session_id
        for record in store.list_for_owner(OWNER):
            if record.child_id is not None:
                assert store.get(record.child_id).parent_id == record.id
            if record.parent_id is not None:
                assert store.get(record.parent_id).child_id == record.id


class TestChainLinkerRace:
    def test_two_racing_follow_ups_one_wins(self) -> None:
        store = InMemoryStore()
        linker = ChainLinker(store)
        parent = linker.create_linked(PAYLOAD, OWNER).session_id
        barrier = threading.Barrier(2)
        outcomes: list[object] = []

        def follow_up() -> None:
            barrier.wait()
            try:
                outcomes.append(linker.create_linked(PAYLOAD, OWNER, parent_id=parent))
            except LinkConflictError as exc:
                outcomes.append(exc)

        threads = [threading.Thread(target=follow_up) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [o for o in outcomes if isinstance(o, LinkResult)]
        losers = [o for o in outcomes if isinstance(o, LinkConflictError)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert store.get(parent).child_id == winners[0].session_id
        children = [r for r in store.list_for_owner(OWNER) if r.parent_id == parent]
        assert [c.id for c in children] == [winners[0].session_id]
