"""RelationshipSyncEngine: membership diff, replace, promote/demote.

Invariants:
    - added, removed and unchanged are pairwise disjoint
    - existence of every target is checked before anything is written
    - unchanged members are never notified; an identical replay is silent
"""

import pytest

from taskboard.core.errors import RelationshipNotMutable, RelationshipTargetNotFound
from taskboard.core.relationships import (
    EventKind,
    Membership,
    RelationshipSyncEngine,
    diff_members,
)
from taskboard.schemas.jsonapi import ResourceIdentifier

TASK = ResourceIdentifier(type="tasks", id="1")


def user(id_: str) -> ResourceIdentifier:
    return ResourceIdentifier(type="users", id=id_)


A, B, C, D = user("a"), user("b"), user("c"), user("d")


class FakeMembershipStore:
    """In-memory join table keyed by (owner, relationship name)."""

    def __init__(self, existing=(), members=()) -> None:
        self.existing = set(existing)
        self.rows: dict[tuple, dict[ResourceIdentifier, dict[str, bool]]] = {
            (TASK, "assignees"): {m: {"is_supervisor": False} for m in members}
        }
        self.writes: list[str] = []

    async def missing(self, identifiers):
        return [i for i in identifiers if i not in self.existing]

    async def members(self, owner, relationship):
        rows = self.rows.get((owner, relationship.name), {})
        return [Membership(owner, target, dict(flags)) for target, flags in rows.items()]

    async def replace_members(self, owner, relationship, targets, pivot_attributes=None):
        self.writes.append("replace")
        current = self.rows.get((owner, relationship.name), {})
        defaults = {flag: False for flag in relationship.pivot_flags}
        self.rows[(owner, relationship.name)] = {
            t: current.get(t, {**defaults, **(pivot_attributes or {})}) for t in targets
        }

    async def set_pivot_flag(self, owner, relationship, targets, flag, value):
        self.writes.append(f"{flag}={value}")
        for target in targets:
            row = self.rows.get((owner, relationship.name), {}).get(target)
            if row is not None:
                row[flag] = value

    def current(self):
        return list(self.rows[(TASK, "assignees")])


@pytest.fixture
def assignees(registry):
    return registry.relationship("tasks", "assignees")


# ─── diff ───────────────────────────────────────────────────────


def test_diff_splits_membership():
    diff = diff_members({A, B, C}, [B, C, D])
    assert diff.added == {D}
    assert diff.removed == {A}
    assert diff.unchanged == {B, C}
    assert diff.members == (B, C, D)


def test_diff_to_empty_set_removes_everything():
    diff = diff_members({A, B}, [])
    assert diff.added == frozenset()
    assert diff.removed == {A, B}
    assert diff.members == ()


def test_diff_sets_are_disjoint():
    diff = diff_members({A, B, C}, [C, D, D])
    assert not (diff.added & diff.removed)
    assert not (diff.added & diff.unchanged)
    assert not (diff.removed & diff.unchanged)
    assert diff.members == (C, D)


# ─── replace ────────────────────────────────────────────────────


async def test_replace_notifies_only_added_and_removed(assignees):
    store = FakeMembershipStore(existing={A, B, C, D}, members=[A, B, C])
    result = await RelationshipSyncEngine(store).replace(TASK, assignees, [B, C, D])

    assert store.current() == [B, C, D]
    assert [(e.kind, e.recipients) for e in result.events] == [
        (EventKind.ASSIGNED, (D,)),
        (EventKind.UNASSIGNED, (A,)),
    ]


async def test_replace_with_empty_set_clears_membership(assignees):
    store = FakeMembershipStore(existing={A, B}, members=[A, B])
    result = await RelationshipSyncEngine(store).replace(TASK, assignees, [])

    assert store.current() == []
    assert result.diff.added == frozenset()
    assert result.diff.removed == {A, B}
    assert [e.kind for e in result.events] == [EventKind.UNASSIGNED]


async def test_identical_replay_is_silent(assignees):
    store = FakeMembershipStore(existing={A, B})
    engine = RelationshipSyncEngine(store)
    await engine.replace(TASK, assignees, [A, B])

    second = await engine.replace(TASK, assignees, [A, B])
    assert second.diff.is_empty
    assert second.events == ()


async def test_missing_target_aborts_before_write(assignees):
    store = FakeMembershipStore(existing={A}, members=[A])
    with pytest.raises(RelationshipTargetNotFound) as exc_info:
        await RelationshipSyncEngine(store).replace(TASK, assignees, [A, D])

    assert exc_info.value.missing == [D]
    assert store.writes == []
    assert store.current() == [A]


async def test_wrong_target_type_counts_as_missing(assignees):
    project = ResourceIdentifier(type="projects", id="a")
    store = FakeMembershipStore(existing={A, project})
    with pytest.raises(RelationshipTargetNotFound):
        await RelationshipSyncEngine(store).replace(TASK, assignees, [project])
    assert store.writes == []


async def test_replace_keeps_flags_of_surviving_members(assignees):
    store = FakeMembershipStore(existing={A, B}, members=[A])
    store.rows[(TASK, "assignees")][A]["is_supervisor"] = True
    await RelationshipSyncEngine(store).replace(TASK, assignees, [A, B])

    rows = store.rows[(TASK, "assignees")]
    assert rows[A]["is_supervisor"] is True
    assert rows[B]["is_supervisor"] is False


async def test_foreign_key_relationship_is_not_replaceable(registry):
    store = FakeMembershipStore()
    with pytest.raises(RelationshipNotMutable):
        await RelationshipSyncEngine(store).replace(
            ResourceIdentifier(type="projects", id="1"),
            registry.relationship("projects", "creator"),
            [A],
        )


# ─── promote / demote ───────────────────────────────────────────


async def test_promote_notifies_exactly_named_targets(assignees):
    store = FakeMembershipStore(existing={A, B, C}, members=[A, B, C])
    events = await RelationshipSyncEngine(store).promote(TASK, assignees, [B, C, B])

    assert [(e.kind, e.recipients) for e in events] == [(EventKind.PROMOTED, (B, C))]
    rows = store.rows[(TASK, "assignees")]
    assert [rows[m]["is_supervisor"] for m in (A, B, C)] == [False, True, True]
    assert store.current() == [A, B, C]


async def test_demote_clears_flag(assignees):
    store = FakeMembershipStore(existing={A}, members=[A])
    store.rows[(TASK, "assignees")][A]["is_supervisor"] = True
    events = await RelationshipSyncEngine(store).demote(TASK, assignees, [A])

    assert events[0].kind == EventKind.DEMOTED
    assert store.rows[(TASK, "assignees")][A]["is_supervisor"] is False


async def test_promote_unknown_target_writes_nothing(assignees):
    store = FakeMembershipStore(existing={A}, members=[A])
    with pytest.raises(RelationshipTargetNotFound):
        await RelationshipSyncEngine(store).promote(TASK, assignees, [A, D])
    assert store.writes == []


async def test_promote_requires_pivot_flag(registry):
    store = FakeMembershipStore(existing={A})
    with pytest.raises(RelationshipNotMutable):
        await RelationshipSyncEngine(store).promote(
            ResourceIdentifier(type="projects", id="1"),
            registry.relationship("projects", "invitees"),
            [A],
        )
