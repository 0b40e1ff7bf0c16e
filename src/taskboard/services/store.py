"""Persistence collaborator: the Store interface and its SQLAlchemy implementation.

The engine only ever sees :class:`Store`. ``SQLAlchemyStore`` maps resource
type names to models and relationship accessors to one of three relation
shapes (join table, has-many foreign key, belongs-to foreign key), so a
new resource type needs a model and a table entry here, nothing else.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.errors import Conflict, NotFound, RelationshipNotMutable
from taskboard.core.registry import RelationshipDescriptor, ResourceRegistry
from taskboard.core.relationships import Membership
from taskboard.core.sorting import SortField
from taskboard.models import Category, Group, Project, ProjectInvitee, Task, TaskAssignee, User
from taskboard.schemas.jsonapi import ResourceIdentifier
from taskboard.schemas.pagination import PageSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceRecord:
    """A stored resource reduced to its identifier and exposed attributes."""

    identifier: ResourceIdentifier
    attributes: dict[str, Any]


class Store(ABC):
    """Everything the resource service needs from persistence."""

    @abstractmethod
    async def fetch(self, type_name: str, resource_id: str) -> ResourceRecord | None: ...

    @abstractmethod
    async def fetch_many(
        self, identifiers: Sequence[ResourceIdentifier]
    ) -> list[ResourceRecord]: ...

    @abstractmethod
    async def fetch_page(
        self, type_name: str, sort: Sequence[SortField], page: PageSpec
    ) -> list[ResourceRecord]: ...

    @abstractmethod
    async def count(self, type_name: str) -> int: ...

    @abstractmethod
    async def create(self, type_name: str, attributes: Mapping[str, Any]) -> ResourceRecord: ...

    @abstractmethod
    async def update(
        self, type_name: str, resource_id: str, attributes: Mapping[str, Any]
    ) -> ResourceRecord: ...

    @abstractmethod
    async def delete(self, type_name: str, resource_id: str) -> None: ...

    @abstractmethod
    async def related(
        self,
        owners: Sequence[ResourceIdentifier],
        relationship: RelationshipDescriptor,
    ) -> dict[ResourceIdentifier, list[ResourceIdentifier]]: ...

    @abstractmethod
    async def members(
        self, owner: ResourceIdentifier, relationship: RelationshipDescriptor
    ) -> list[Membership]: ...

    @abstractmethod
    async def replace_members(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        pivot_attributes: Mapping[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def set_pivot_flag(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        flag: str,
        value: bool,
    ) -> None: ...

    @abstractmethod
    async def missing(
        self, identifiers: Sequence[ResourceIdentifier]
    ) -> list[ResourceIdentifier]: ...

    @abstractmethod
    async def is_unique(
        self, table: str, column: str, value: Any, ignore_id: str | None = None
    ) -> bool: ...


# ---------------------------------------------------------------------------
# Relation shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JoinRelation:
    """Many-to-many through a join model with one row per membership."""

    model: type
    owner_column: str
    target_column: str


@dataclass(frozen=True)
class HasManyRelation:
    """Targets carry a foreign key pointing at the owner."""

    model: type
    foreign_key: str


@dataclass(frozen=True)
class BelongsToRelation:
    """The owner carries a foreign key pointing at its single target."""

    foreign_key: str


MODELS: dict[str, type] = {
    "users": User,
    "projects": Project,
    "tasks": Task,
    "categories": Category,
    "groups": Group,
}

RELATIONS: dict[tuple[str, str], JoinRelation | HasManyRelation | BelongsToRelation] = {
    ("users", "invitations"): JoinRelation(ProjectInvitee, "user_id", "project_id"),
    ("users", "projects"): HasManyRelation(Project, "user_id"),
    ("users", "tasks_assigned"): JoinRelation(TaskAssignee, "user_id", "task_id"),
    ("categories", "tasks"): HasManyRelation(Task, "category_id"),
    ("projects", "invitees"): JoinRelation(ProjectInvitee, "project_id", "user_id"),
    ("projects", "creator"): BelongsToRelation("user_id"),
    ("projects", "tasks"): HasManyRelation(Task, "project_id"),
    ("tasks", "assignees"): JoinRelation(TaskAssignee, "task_id", "user_id"),
}


class SQLAlchemyStore(Store):
    """Store backed by an async SQLAlchemy session.

    Every mutating method commits its own unit of work.

    Args:
        db: Async SQLAlchemy session for database operations.
        registry: Resource registry (attribute lists per type).
    """

    def __init__(self, db: AsyncSession, registry: ResourceRegistry) -> None:
        self.db = db
        self.registry = registry

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _model(self, type_name: str) -> type:
        self.registry.describe(type_name)
        return MODELS[type_name]

    @staticmethod
    def _key(model: type, raw_id: str) -> Any | None:
        """Convert a string id to the model's primary-key type, or None if impossible."""
        if model.__table__.c.id.type.python_type is int:
            try:
                return int(raw_id)
            except (TypeError, ValueError):
                return None
        return raw_id

    def _record(self, type_name: str, obj: Any) -> ResourceRecord:
        descriptor = self.registry.describe(type_name)
        return ResourceRecord(
            identifier=ResourceIdentifier(type=type_name, id=str(obj.id)),
            attributes=obj.attribute_values(descriptor.attributes),
        )

    async def _get(self, type_name: str, resource_id: str) -> Any | None:
        model = self._model(type_name)
        key = self._key(model, resource_id)
        if key is None:
            return None
        return await self.db.get(model, key)

    def _relation(self, owner_type: str, relationship: RelationshipDescriptor):
        return RELATIONS[(owner_type, relationship.accessor)]

    def _join(self, owner_type: str, relationship: RelationshipDescriptor) -> JoinRelation:
        spec = self._relation(owner_type, relationship)
        if not isinstance(spec, JoinRelation):
            raise RelationshipNotMutable(owner_type, relationship.name)
        return spec

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info("Integrity violation on commit: %s", exc.orig)
            raise Conflict(
                "The request conflicts with an existing resource or references a missing one."
            ) from exc

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def fetch(self, type_name: str, resource_id: str) -> ResourceRecord | None:
        obj = await self._get(type_name, resource_id)
        return self._record(type_name, obj) if obj is not None else None

    async def fetch_many(
        self, identifiers: Sequence[ResourceIdentifier]
    ) -> list[ResourceRecord]:
        """Fetch records for identifiers of any types; unknown ids are skipped."""
        by_type: dict[str, list[Any]] = {}
        for identifier in identifiers:
            model = self._model(identifier.type)
            key = self._key(model, identifier.id)
            if key is not None:
                by_type.setdefault(identifier.type, []).append(key)

        found: dict[ResourceIdentifier, ResourceRecord] = {}
        for type_name, keys in by_type.items():
            model = MODELS[type_name]
            result = await self.db.execute(select(model).where(model.id.in_(keys)))
            for obj in result.scalars().all():
                record = self._record(type_name, obj)
                found[record.identifier] = record
        return [found[i] for i in identifiers if i in found]

    async def fetch_page(
        self, type_name: str, sort: Sequence[SortField], page: PageSpec
    ) -> list[ResourceRecord]:
        model = self._model(type_name)
        query = select(model)
        for field in sort:
            column = getattr(model, field.name)
            query = query.order_by(column.desc() if field.descending else column.asc())
        # Primary key last keeps equal sort keys in insertion order.
        query = query.order_by(model.id.asc()).offset(page.offset).limit(page.size)
        result = await self.db.execute(query)
        return [self._record(type_name, obj) for obj in result.scalars().all()]

    async def count(self, type_name: str) -> int:
        model = self._model(type_name)
        result = await self.db.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    async def create(self, type_name: str, attributes: Mapping[str, Any]) -> ResourceRecord:
        model = self._model(type_name)
        obj = model(**attributes)
        self.db.add(obj)
        await self._commit()
        await self.db.refresh(obj)
        logger.info(
            "Created %s %s", type_name, obj.id,
            extra={"resource_type": type_name, "resource_id": str(obj.id)},
        )
        return self._record(type_name, obj)

    async def update(
        self, type_name: str, resource_id: str, attributes: Mapping[str, Any]
    ) -> ResourceRecord:
        obj = await self._get(type_name, resource_id)
        if obj is None:
            raise NotFound()
        for name, value in attributes.items():
            setattr(obj, name, value)
        await self._commit()
        await self.db.refresh(obj)
        return self._record(type_name, obj)

    async def delete(self, type_name: str, resource_id: str) -> None:
        """Delete a resource; memberships and children go via FK ON DELETE rules."""
        obj = await self._get(type_name, resource_id)
        if obj is None:
            raise NotFound()
        await self.db.delete(obj)
        await self._commit()
        logger.info(
            "Deleted %s %s", type_name, resource_id,
            extra={"resource_type": type_name, "resource_id": resource_id},
        )

    async def missing(
        self, identifiers: Sequence[ResourceIdentifier]
    ) -> list[ResourceIdentifier]:
        found = {record.identifier for record in await self.fetch_many(identifiers)}
        return [i for i in identifiers if i not in found]

    async def is_unique(
        self, table: str, column: str, value: Any, ignore_id: str | None = None
    ) -> bool:
        model = self._model(table)
        query = select(func.count()).select_from(model).where(getattr(model, column) == value)
        if ignore_id is not None:
            key = self._key(model, ignore_id)
            if key is not None:
                query = query.where(model.id != key)
        result = await self.db.execute(query)
        return result.scalar_one() == 0

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    async def related(
        self,
        owners: Sequence[ResourceIdentifier],
        relationship: RelationshipDescriptor,
    ) -> dict[ResourceIdentifier, list[ResourceIdentifier]]:
        """Linked identifiers per owner, batched into one query per relationship."""
        linked: dict[ResourceIdentifier, list[ResourceIdentifier]] = {o: [] for o in owners}
        if not owners:
            return linked
        owner_type = owners[0].type
        owner_model = self._model(owner_type)
        keys = {}
        for owner in owners:
            key = self._key(owner_model, owner.id)
            if key is not None:
                keys[key] = owner
        if not keys:
            return linked

        spec = self._relation(owner_type, relationship)
        if isinstance(spec, JoinRelation):
            owner_col = getattr(spec.model, spec.owner_column)
            target_col = getattr(spec.model, spec.target_column)
            query = (
                select(owner_col, target_col)
                .where(owner_col.in_(keys))
                .order_by(spec.model.id.asc())
            )
        elif isinstance(spec, HasManyRelation):
            fk = getattr(spec.model, spec.foreign_key)
            query = select(fk, spec.model.id).where(fk.in_(keys)).order_by(spec.model.id.asc())
        else:
            fk = getattr(owner_model, spec.foreign_key)
            query = select(owner_model.id, fk).where(owner_model.id.in_(keys), fk.is_not(None))

        for owner_key, target_key in (await self.db.execute(query)).all():
            linked[keys[owner_key]].append(
                ResourceIdentifier(type=relationship.target_type, id=str(target_key))
            )
        return linked

    async def members(
        self, owner: ResourceIdentifier, relationship: RelationshipDescriptor
    ) -> list[Membership]:
        """Current memberships, locking the owner row until the next commit."""
        spec = self._join(owner.type, relationship)
        owner_model = self._model(owner.type)
        owner_key = self._key(owner_model, owner.id)
        await self.db.execute(
            select(owner_model.id).where(owner_model.id == owner_key).with_for_update()
        )

        owner_col = getattr(spec.model, spec.owner_column)
        result = await self.db.execute(
            select(spec.model).where(owner_col == owner_key).order_by(spec.model.id.asc())
        )
        return [
            Membership(
                owner=owner,
                target=ResourceIdentifier(
                    type=relationship.target_type, id=str(getattr(row, spec.target_column))
                ),
                flags={flag: bool(getattr(row, flag)) for flag in relationship.pivot_flags},
            )
            for row in result.scalars().all()
        ]

    async def replace_members(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        pivot_attributes: Mapping[str, Any] | None = None,
    ) -> None:
        """Make the join rows for ``owner`` exactly ``targets``.

        Rows that survive keep their flags; ``pivot_attributes`` (restricted
        to the relationship's pivot flags) apply to newly created rows.
        """
        spec = self._join(owner.type, relationship)
        owner_key = self._key(self._model(owner.type), owner.id)
        target_model = self._model(relationship.target_type)
        target_keys = [self._key(target_model, t.id) for t in targets]

        owner_col = getattr(spec.model, spec.owner_column)
        target_col = getattr(spec.model, spec.target_column)

        stale = delete(spec.model).where(owner_col == owner_key)
        if target_keys:
            stale = stale.where(target_col.not_in(target_keys))
        await self.db.execute(stale)

        existing = set(
            (await self.db.execute(select(target_col).where(owner_col == owner_key))).scalars()
        )
        extra = {
            k: v for k, v in (pivot_attributes or {}).items() if k in relationship.pivot_flags
        }
        for key in target_keys:
            if key not in existing:
                self.db.add(
                    spec.model(**{spec.owner_column: owner_key, spec.target_column: key, **extra})
                )
        await self._commit()

    async def set_pivot_flag(
        self,
        owner: ResourceIdentifier,
        relationship: RelationshipDescriptor,
        targets: Sequence[ResourceIdentifier],
        flag: str,
        value: bool,
    ) -> None:
        """Set ``flag`` on the existing join rows of ``targets``; non-members are ignored."""
        spec = self._join(owner.type, relationship)
        owner_key = self._key(self._model(owner.type), owner.id)
        target_model = self._model(relationship.target_type)
        target_keys = [self._key(target_model, t.id) for t in targets]
        if target_keys:
            await self.db.execute(
                update(spec.model)
                .where(
                    getattr(spec.model, spec.owner_column) == owner_key,
                    getattr(spec.model, spec.target_column).in_(target_keys),
                )
                .values({flag: value})
            )
        await self._commit()
