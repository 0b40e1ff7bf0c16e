"""Resource registry: the immutable catalogue of per-type metadata.

Each resource type is described by data (sortable fields, includable
relationships, validation rules, relationship targets) that the generic
algorithms in ``taskboard.core`` consume. There is no per-type code path:
adding a resource type means adding an entry to the catalogue.

The registry is built once at startup by :func:`load_registry` and passed
explicitly to the services that need it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from taskboard.core.errors import RelationshipNotFound, UnknownResourceType

OPERATIONS = ("create", "update")


@dataclass(frozen=True)
class RelationshipDescriptor:
    """One relationship of a resource type.

    ``accessor`` names the store-side relation; ``pivot_flags`` lists the
    boolean flags carried by each membership of a to-many relationship.
    Only ``mutable`` relationships (join-table backed) accept replacement.
    """

    name: str
    target_type: str
    accessor: str
    to_many: bool = True
    pivot_flags: tuple[str, ...] = ()
    mutable: bool = True


@dataclass(frozen=True)
class ResourceTypeDescriptor:
    name: str
    attributes: tuple[str, ...]
    allowed_sorts: tuple[str, ...]
    allowed_includes: frozenset[str]
    validation_rules: Mapping[str, Mapping[str, str]]
    relationships: tuple[RelationshipDescriptor, ...] = field(default=())

    def relationship(self, name: str) -> RelationshipDescriptor:
        for rel in self.relationships:
            if rel.name == name:
                return rel
        raise RelationshipNotFound(self.name, name)


class ResourceRegistry:
    """Read-only lookup of resource type descriptors by name."""

    def __init__(self, descriptors: Iterable[ResourceTypeDescriptor]) -> None:
        self._descriptors: Mapping[str, ResourceTypeDescriptor] = MappingProxyType(
            {d.name: d for d in descriptors}
        )

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._descriptors

    def type_names(self) -> tuple[str, ...]:
        return tuple(self._descriptors)

    def describe(self, type_name: str) -> ResourceTypeDescriptor:
        """Return the descriptor for ``type_name``.

        Raises:
            UnknownResourceType: If the name is not registered.
        """
        try:
            return self._descriptors[type_name]
        except KeyError:
            raise UnknownResourceType(type_name) from None

    def is_sort_allowed(self, type_name: str, field_name: str) -> bool:
        return field_name in self.describe(type_name).allowed_sorts

    def is_include_allowed(self, type_name: str, relationship: str) -> bool:
        return relationship in self.describe(type_name).allowed_includes

    def rules_for(self, type_name: str, operation: str) -> Mapping[str, str]:
        """Return the ``field path -> rule expression`` mapping for an operation."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        return self.describe(type_name).validation_rules.get(
            operation, MappingProxyType({})
        )

    def relationship(self, type_name: str, relationship: str) -> RelationshipDescriptor:
        return self.describe(type_name).relationship(relationship)


def _freeze_rules(rules: Mapping[str, Mapping[str, str]]) -> Mapping[str, Mapping[str, str]]:
    return MappingProxyType(
        {op: MappingProxyType(dict(rules.get(op, {}))) for op in OPERATIONS}
    )


def load_registry(catalogue: Mapping[str, Mapping[str, Any]]) -> ResourceRegistry:
    """Build an immutable registry from a declarative catalogue mapping.

    Relationship targets must themselves be registered types and every
    allowed include must name a declared relationship.
    """
    descriptors = []
    for name, entry in catalogue.items():
        relationships = tuple(
            RelationshipDescriptor(
                name=rel["name"],
                target_type=rel["type"],
                accessor=rel.get("accessor", rel["name"]),
                to_many=rel.get("to_many", True),
                pivot_flags=tuple(rel.get("pivot_flags", ())),
                mutable=rel.get("mutable", rel.get("to_many", True)),
            )
            for rel in entry.get("relationships", ())
        )
        descriptor = ResourceTypeDescriptor(
            name=name,
            attributes=tuple(entry.get("attributes", ())),
            allowed_sorts=tuple(entry.get("allowedSorts", ())),
            allowed_includes=frozenset(entry.get("allowedIncludes", ())),
            validation_rules=_freeze_rules(entry.get("validationRules", {})),
            relationships=relationships,
        )
        declared = {rel.name for rel in relationships}
        undeclared = descriptor.allowed_includes - declared
        if undeclared:
            raise ValueError(
                f"{name}: includes without a relationship: {sorted(undeclared)}"
            )
        descriptors.append(descriptor)

    registry = ResourceRegistry(descriptors)
    for descriptor in descriptors:
        for rel in descriptor.relationships:
            if rel.target_type not in registry:
                raise ValueError(
                    f"{descriptor.name}.{rel.name} targets unknown type {rel.target_type}"
                )
    return registry


# ---------------------------------------------------------------------------
# Default catalogue
# ---------------------------------------------------------------------------

DEFAULT_CATALOGUE: dict[str, dict[str, Any]] = {
    "users": {
        "attributes": (
            "name", "email", "username", "role", "profile_avatar", "status",
            "created_at", "updated_at",
        ),
        "allowedSorts": ("name", "created_at", "updated_at"),
        "allowedIncludes": ("invitations", "projects", "tasksAssigned"),
        "validationRules": {
            "create": {
                "data.attributes.name": "required|string|max:255",
                "data.attributes.email": "required|string|email|unique:users,email",
                "data.attributes.password": "required|string|min:6|confirmed",
            },
            "update": {
                "data.attributes.name": "sometimes|string",
                "data.attributes.profile_avatar": "sometimes|image|mimes:jpg,png,jpeg,svg",
                "data.attributes.email": "sometimes|email|unique:users,email",
                "data.attributes.username": "sometimes|string|unique:users,username",
                "data.attributes.status": "sometimes|boolean",
            },
        },
        "relationships": (
            {"name": "invitations", "type": "projects", "accessor": "invitations"},
            {"name": "projects", "type": "projects", "accessor": "projects", "mutable": False},
            {"name": "tasksAssigned", "type": "tasks", "accessor": "tasks_assigned"},
        ),
    },
    "categories": {
        "attributes": ("title", "created_at", "updated_at"),
        "allowedSorts": ("title", "created_at"),
        "allowedIncludes": ("tasks",),
        "validationRules": {
            "create": {
                "data.attributes.title": "required|string|max:255",
            },
            "update": {
                "data.attributes.title": "sometimes|required|string|max:255",
            },
        },
        "relationships": (
            {"name": "tasks", "type": "tasks", "accessor": "tasks", "mutable": False},
        ),
    },
    "projects": {
        "attributes": ("name", "user_id", "created_at", "updated_at"),
        "allowedSorts": ("name", "created_at", "updated_at"),
        "allowedIncludes": ("invitees", "creator", "tasks"),
        "validationRules": {
            "create": {
                "data.attributes.name": "required|string|unique:projects,name",
            },
            "update": {
                "data.attributes.name": "sometimes|string|unique:projects,name",
            },
        },
        "relationships": (
            {"name": "invitees", "type": "users", "accessor": "invitees"},
            {"name": "creator", "type": "users", "accessor": "creator", "to_many": False},
            {"name": "tasks", "type": "tasks", "accessor": "tasks", "mutable": False},
        ),
    },
    "tasks": {
        "attributes": (
            "title", "description", "deadline", "unique_id", "project_id",
            "category_id", "group_id", "user_id", "created_at", "updated_at",
        ),
        "allowedSorts": ("title", "created_at", "updated_at"),
        "allowedIncludes": ("assignees",),
        "validationRules": {
            "create": {
                "data.attributes.title": "required|string|unique:tasks,title",
                "data.attributes.description": "nullable|string",
                "data.attributes.project_id": "required|integer",
                "data.attributes.category_id": "sometimes|nullable|integer",
                "data.attributes.group_id": "sometimes|nullable|integer",
                "data.attributes.user_id": "sometimes|nullable|string",
                "data.attributes.deadline": "nullable|date_format:Y-m-d H:i:s",
            },
            "update": {
                "data.attributes.title": "sometimes|required|string|unique:tasks,title",
                "data.attributes.description": "sometimes|nullable|string",
                "data.attributes.project_id": "sometimes|required|integer",
                "data.attributes.category_id": "sometimes|required|integer",
                "data.attributes.group_id": "sometimes|required|integer",
                "data.attributes.deadline": "sometimes|nullable|date_format:Y-m-d H:i:s",
            },
        },
        "relationships": (
            {
                "name": "assignees",
                "type": "users",
                "accessor": "assignees",
                "pivot_flags": ("is_supervisor",),
            },
        ),
    },
    "groups": {
        "attributes": ("title", "project_id", "user_id", "created_at", "updated_at"),
        "allowedSorts": ("title", "created_at", "updated_at"),
        "allowedIncludes": (),
        "validationRules": {
            "create": {
                "data.attributes.title": "required|string|unique:groups,title",
                "data.attributes.project_id": "required|integer",
                "data.attributes.user_id": "required|string",
            },
            "update": {
                "data.attributes.title": "sometimes|required|string|unique:groups,title",
                "data.attributes.project_id": "sometimes|required|integer",
                "data.attributes.user_id": "sometimes|required|string",
            },
        },
        "relationships": (),
    },
}
