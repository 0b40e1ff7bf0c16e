"""Many-to-many membership synchronisation.

A to-many relationship is a set of explicit join entities
(:class:`Membership`: owner, target, flags). Replacing it is a three-step
unit of work, always in this order:

    1. every requested target is checked for existence (nothing is written
       if any is missing)
    2. the diff is computed against the membership read just before the write
    3. the store replaces the membership set

The engine never talks to a notification channel. It returns the events
the change implies (``assigned`` for added targets, ``unassigned`` for
removed ones, nothing for unchanged ones) and the caller dispatches them
after the write has committed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from taskboard.core.errors import RelationshipNotMutable, RelationshipTargetNotFound
from taskboard.core.registry import RelationshipDescriptor
from taskboard.schemas.jsonapi import ResourceIdentifier

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    PROMOTED = "promoted"
    DEMOTED = "demoted"


@dataclass(frozen=True)
class Membership:
    """Join entity between an owner and one target of a relationship."""

    owner: ResourceIdentifier
    target: ResourceIdentifier
    flags: Mapping[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class MembershipDiff:
    """Split of current vs requested members.

    ``added``, ``removed`` and ``unchanged`` are pairwise disjoint;
    ``added | unchanged`` is the requested set and ``removed | unchanged``
    the current one. ``members`` keeps the requested targets in request order.
    """

    added: frozenset[ResourceIdentifier]
    removed: frozenset[ResourceIdentifier]
    unchanged: frozenset[ResourceIdentifier]
    members: tuple[ResourceIdentifier, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


@dataclass(frozen=True)
class RelationshipEvent:
    """A post-commit notification: ``kind`` happened to ``recipients``."""

    kind: EventKind
    owner: ResourceIdentifier
    relationship: str
    recipients: tuple[ResourceIdentifier, ...]


@dataclass(frozen=True)
class SyncResult:
    diff: MembershipDiff
    events: tuple[RelationshipEvent, ...]


class MembershipStore(Protocol):
    """The persistence operations the engine needs."""

    async def missing(
        self, identifiers: Sequence[ResourceIdentifier]
    ) -> list[ResourceIdentifier]: ...

    async def members(
        self, owner: ResourceIdentifier, relationship: RelationshipDescriptor
    ) -> list[Membership]: ...

    async def replace_members(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        pivot_attributes: Mapping[str, Any] | None = None,
    ) -> None: ...

    async def set_pivot_flag(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        flag: str,
        value: bool,
    ) -> None: ...


def _unique(identifiers: Iterable[ResourceIdentifier]) -> tuple[ResourceIdentifier, ...]:
    return tuple(dict.fromkeys(identifiers))


def diff_members(
    current: Iterable[ResourceIdentifier], requested: Iterable[ResourceIdentifier]
) -> MembershipDiff:
    """Compute the membership diff between the current and requested targets."""
    requested_order = _unique(requested)
    current_set = frozenset(current)
    requested_set = frozenset(requested_order)
    return MembershipDiff(
        added=requested_set - current_set,
        removed=current_set - requested_set,
        unchanged=current_set & requested_set,
        members=requested_order,
    )


class RelationshipSyncEngine:
    """Computes and applies membership changes for to-many relationships.

    Args:
        store: Persistence collaborator; must serialise concurrent writes
            to the same owner itself.
    """

    def __init__(self, store: MembershipStore) -> None:
        self.store = store

    diff = staticmethod(diff_members)

    async def replace(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        requested: Sequence[ResourceIdentifier],
        pivot_attributes: Mapping[str, Any] | None = None,
    ) -> SyncResult:
        """Make the membership exactly ``requested`` (empty clears it).

        Raises:
            RelationshipNotMutable: For to-one or foreign-key backed relationships.
            RelationshipTargetNotFound: If any target does not exist; raised
                before anything is written.
        """
        if not relationship.to_many or not relationship.mutable:
            raise RelationshipNotMutable(owner.type, relationship.name)

        await self.ensure_targets_exist(relationship, requested)
        current = [m.target for m in await self.store.members(owner, relationship)]
        diff = self.diff(current, requested)
        await self.apply(owner, relationship, diff, pivot_attributes)

        events = []
        added = tuple(t for t in diff.members if t in diff.added)
        removed = tuple(t for t in current if t in diff.removed)
        if added:
            events.append(RelationshipEvent(EventKind.ASSIGNED, owner, relationship.name, added))
        if removed:
            events.append(RelationshipEvent(EventKind.UNASSIGNED, owner, relationship.name, removed))
        return SyncResult(diff=diff, events=tuple(events))

    async def apply(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        diff: MembershipDiff,
        pivot_attributes: Mapping[str, Any] | None = None,
    ) -> None:
        """Persist ``diff.members`` as the relationship's full membership."""
        await self.store.replace_members(owner, relationship, diff.members, pivot_attributes)
        logger.info(
            "Replaced %s.%s membership for %s: +%d -%d",
            owner.type, relationship.name, owner, len(diff.added), len(diff.removed),
            extra={"resource_type": owner.type, "resource_id": owner.id, "relationship": relationship.name},
        )

    async def promote(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
    ) -> tuple[RelationshipEvent, ...]:
        """Raise the role flag on ``targets`` and notify exactly those targets."""
        return await self._set_flag(owner, relationship, targets, True, EventKind.PROMOTED)

    async def demote(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
    ) -> tuple[RelationshipEvent, ...]:
        """Clear the role flag on ``targets`` and notify exactly those targets."""
        return await self._set_flag(owner, relationship, targets, False, EventKind.DEMOTED)

    async def _set_flag(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        value: bool,
        kind: EventKind,
    ) -> tuple[RelationshipEvent, ...]:
        if not relationship.to_many or not relationship.pivot_flags:
            raise RelationshipNotMutable(owner.type, relationship.name)

        targets = _unique(targets)
        await self.ensure_targets_exist(relationship, targets)
        flag = relationship.pivot_flags[0]
        # Membership is untouched; only existing join rows get the flag.
        await self.store.set_pivot_flag(owner, relationship, targets, flag, value)
        logger.info(
            "Set %s=%s on %d %s.%s members of %s",
            flag, value, len(targets), owner.type, relationship.name, owner,
        )
        if not targets:
            return ()
        return (RelationshipEvent(kind, owner, relationship.name, targets),)

    async def ensure_targets_exist(
        self,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
    ) -> None:
        """Raise RelationshipTargetNotFound unless every target resolves."""
        wrong_type = [t for t in targets if t.type != relationship.target_type]
        candidates = [t for t in targets if t.type == relationship.target_type]
        missing = wrong_type + (await self.store.missing(candidates) if candidates else [])
        if missing:
            raise RelationshipTargetNotFound(missing)
