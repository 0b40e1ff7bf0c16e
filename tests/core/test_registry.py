"""ResourceRegistry: immutable per-type metadata lookups."""

import dataclasses

import pytest

from taskboard.core.errors import RelationshipNotFound, UnknownResourceType
from taskboard.core.registry import DEFAULT_CATALOGUE, load_registry


def test_registers_all_five_resource_types(registry):
    assert set(registry.type_names()) == {"users", "categories", "projects", "tasks", "groups"}


def test_describe_unknown_type_raises(registry):
    with pytest.raises(UnknownResourceType) as exc_info:
        registry.describe("widgets")
    assert exc_info.value.status == 404


def test_sort_and_include_whitelists(registry):
    assert registry.is_sort_allowed("tasks", "title")
    assert not registry.is_sort_allowed("tasks", "description")
    assert registry.is_include_allowed("projects", "creator")
    assert not registry.is_include_allowed("groups", "tasks")


def test_rules_for_operation(registry):
    rules = registry.rules_for("categories", "create")
    assert rules["data.attributes.title"] == "required|string|max:255"
    assert registry.rules_for("categories", "update")["data.attributes.title"].startswith("sometimes")


def test_rules_for_unknown_operation_raises(registry):
    with pytest.raises(ValueError):
        registry.rules_for("categories", "destroy")


def test_relationship_lookup(registry):
    assignees = registry.relationship("tasks", "assignees")
    assert assignees.target_type == "users"
    assert assignees.pivot_flags == ("is_supervisor",)
    assert assignees.mutable

    creator = registry.relationship("projects", "creator")
    assert not creator.to_many
    assert not creator.mutable


def test_unknown_relationship_raises(registry):
    with pytest.raises(RelationshipNotFound):
        registry.relationship("tasks", "watchers")


def test_descriptors_are_immutable(registry):
    descriptor = registry.describe("tasks")
    with pytest.raises(dataclasses.FrozenInstanceError):
        descriptor.allowed_sorts = ("title", "description")
    with pytest.raises(TypeError):
        descriptor.validation_rules["create"]["data.attributes.title"] = "string"


def test_include_without_relationship_is_rejected():
    catalogue = {
        "notes": {"allowedIncludes": ("author",), "relationships": ()},
    }
    with pytest.raises(ValueError, match="author"):
        load_registry(catalogue)


def test_relationship_to_unregistered_type_is_rejected():
    catalogue = {
        "notes": {"relationships": ({"name": "author", "type": "people"},)},
    }
    with pytest.raises(ValueError, match="people"):
        load_registry(catalogue)


def test_default_catalogue_loads_twice_into_equal_registries():
    first = load_registry(DEFAULT_CATALOGUE)
    second = load_registry(DEFAULT_CATALOGUE)
    assert first.describe("users") == second.describe("users")
