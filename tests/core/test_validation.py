"""RequestValidator: rule evaluation and pointer-addressed errors."""

from datetime import datetime

import pytest

from taskboard.core.errors import ValidationFailed
from taskboard.core.validation import RequestValidator, parse_rules, to_pointer
from taskboard.schemas.jsonapi import ResourceIdentifier


@pytest.fixture
def validator(registry):
    return RequestValidator(registry)


def _errors(exc_info) -> dict[str, str]:
    return {e.pointer: e.detail for e in exc_info.value.errors}


# ─── Helpers ────────────────────────────────────────────────────


def test_parse_rules_splits_names_and_args():
    rules = parse_rules("required|in:a,b|max:255")
    assert [r.name for r in rules] == ["required", "in", "max"]
    assert rules[1].args == ("a", "b")


def test_to_pointer():
    assert to_pointer("data.attributes.title") == "/data/attributes/title"
    assert to_pointer("data.0.id") == "/data/0/id"


# ─── Resource documents ─────────────────────────────────────────


async def test_missing_data_member(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource({}, "categories", "create")
    assert _errors(exc_info) == {"/data": "The data field is required."}


async def test_type_must_match_endpoint(validator):
    payload = {"data": {"type": "tasks", "attributes": {"title": "Inbox"}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "categories", "create")
    assert "/data/type" in _errors(exc_info)


async def test_reports_every_failing_field(validator):
    payload = {"data": {"type": "tasks", "attributes": {"description": 42}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "tasks", "create")
    assert _errors(exc_info) == {
        "/data/attributes/title": "The data.attributes.title field is required.",
        "/data/attributes/description": "The data.attributes.description must be a string.",
        "/data/attributes/project_id": "The data.attributes.project_id field is required.",
    }


async def test_only_first_failing_rule_per_field(validator):
    payload = {"data": {"type": "categories", "attributes": {"title": 12}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "categories", "create")
    assert len(exc_info.value.errors) == 1
    assert exc_info.value.errors[0].detail == "The data.attributes.title must be a string."


async def test_max_length(validator):
    payload = {"data": {"type": "categories", "attributes": {"title": "x" * 256}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "categories", "create")
    assert _errors(exc_info)["/data/attributes/title"] == (
        "The data.attributes.title may not be greater than 255 characters."
    )


async def test_cleans_integer_and_date_values(validator):
    payload = {
        "data": {
            "type": "tasks",
            "attributes": {
                "title": "Write docs",
                "project_id": "7",
                "deadline": "2026-01-31 17:00:00",
            },
        }
    }
    cleaned = await validator.validate_resource(payload, "tasks", "create")
    assert cleaned["project_id"] == 7
    assert cleaned["deadline"] == datetime(2026, 1, 31, 17, 0, 0)


async def test_bad_date_format(validator):
    payload = {
        "data": {
            "type": "tasks",
            "attributes": {"title": "Write docs", "project_id": 1, "deadline": "31/01/2026"},
        }
    }
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "tasks", "create")
    assert _errors(exc_info)["/data/attributes/deadline"] == (
        "The data.attributes.deadline does not match the format Y-m-d H:i:s."
    )


async def test_attributes_without_rules_are_dropped(validator):
    payload = {
        "data": {
            "type": "tasks",
            "attributes": {
                "title": "Write docs",
                "project_id": 1,
                "unique_id": "forged",
                "created_at": "2020-01-01",
                "group_id": 3,
            },
        }
    }
    cleaned = await validator.validate_resource(payload, "tasks", "create")
    assert "unique_id" not in cleaned
    assert "created_at" not in cleaned
    assert cleaned["group_id"] == 3


async def test_user_create_ignores_role_and_status(validator):
    payload = {
        "data": {
            "type": "users",
            "attributes": {
                "name": "Ada",
                "email": "ada@example.com",
                "password": "secret1",
                "password_confirmation": "secret1",
                "role": "admin",
                "status": "yes",
            },
        }
    }
    cleaned = await validator.validate_resource(payload, "users", "create")
    assert set(cleaned) == {"name", "email", "password"}


@pytest.mark.parametrize("value", [True, 1.5, [1], {"id": 1}, "1.5", "seven"])
async def test_integer_rule_rejects_non_integers(validator, value):
    payload = {
        "data": {"type": "tasks", "attributes": {"title": "Write docs", "project_id": 1, "group_id": value}}
    }
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "tasks", "create")
    assert _errors(exc_info) == {
        "/data/attributes/group_id": "The data.attributes.group_id must be an integer.",
    }


async def test_empty_optional_values_become_null(validator):
    payload = {
        "data": {
            "type": "tasks",
            "attributes": {"title": "Write docs", "project_id": 1, "description": "", "category_id": ""},
        }
    }
    cleaned = await validator.validate_resource(payload, "tasks", "create")
    assert cleaned["description"] is None
    assert cleaned["category_id"] is None


async def test_update_status_must_be_boolean(validator):
    payload = {"data": {"type": "users", "id": "u-a", "attributes": {"status": "yes"}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "users", "update", resource_id="u-a")
    assert _errors(exc_info) == {
        "/data/attributes/status": "The data.attributes.status field must be true or false.",
    }


async def test_non_string_resource_type_and_id(validator):
    payload = {"data": {"type": ["categories"], "id": {"n": 1}, "attributes": {"title": "Inbox"}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "categories", "update", resource_id="1")
    assert _errors(exc_info) == {
        "/data/type": "The selected data.type is invalid.",
        "/data/id": "The data.id must be a string.",
    }


async def test_password_confirmation(validator):
    payload = {
        "data": {
            "type": "users",
            "attributes": {
                "name": "Ada",
                "email": "ada@example.com",
                "password": "secret1",
                "password_confirmation": "secret2",
            },
        }
    }
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "users", "create")
    assert _errors(exc_info) == {
        "/data/attributes/password": "The data.attributes.password confirmation does not match."
    }


async def test_unique_rule_uses_predicate(validator):
    calls = []

    async def taken(table, column, value, ignore_id):
        calls.append((table, column, value, ignore_id))
        return False

    payload = {"data": {"type": "projects", "attributes": {"name": "Apollo"}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "projects", "create", is_unique=taken)
    assert calls == [("projects", "name", "Apollo", None)]
    assert _errors(exc_info)["/data/attributes/name"] == (
        "The data.attributes.name has already been taken."
    )


async def test_unique_predicate_skipped_when_other_rules_fail(validator):
    calls = []

    async def unique(*args):
        calls.append(args)
        return True

    payload = {"data": {"type": "projects", "attributes": {"name": 99}}}
    with pytest.raises(ValidationFailed):
        await validator.validate_resource(payload, "projects", "create", is_unique=unique)
    assert calls == []


async def test_update_requires_string_id(validator):
    payload = {"data": {"type": "categories", "id": 4, "attributes": {}}}
    with pytest.raises(ValidationFailed) as exc_info:
        await validator.validate_resource(payload, "categories", "update", resource_id="4")
    assert _errors(exc_info) == {"/data/id": "The data.id must be a string."}


async def test_update_sometimes_skips_absent_fields(validator):
    payload = {"data": {"type": "categories", "id": "4", "attributes": {}}}
    assert await validator.validate_resource(payload, "categories", "update", resource_id="4") == {}


async def test_update_passes_resource_id_to_unique_check(validator):
    seen = []

    async def unique(table, column, value, ignore_id):
        seen.append(ignore_id)
        return True

    payload = {"data": {"type": "projects", "id": "3", "attributes": {"name": "Apollo"}}}
    await validator.validate_resource(
        payload, "projects", "update", resource_id="3", is_unique=unique
    )
    assert seen == ["3"]


# ─── Relationship documents ─────────────────────────────────────


def test_relationship_data_must_be_present(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({})
    assert exc_info.value.errors[0].pointer == "/data"


@pytest.mark.parametrize("data", [None, [], {}])
def test_relationship_clear_shapes(validator, data):
    assert validator.validate_relationship({"data": data}) in (None, [])


def test_collection_element_missing_id(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"type": "users"}]})
    assert _errors(exc_info) == {"/data/0/id": "The data.0.id field is required."}


def test_collection_element_missing_type(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"id": "1"}]})
    assert _errors(exc_info) == {"/data/0/type": "The data.0.type field is required."}


def test_collection_element_non_string_id(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"id": 5, "type": "users"}]})
    assert _errors(exc_info) == {"/data/0/id": "The data.0.id must be a string."}


@pytest.mark.parametrize("type_value", [["users"], {"name": "users"}, 7])
def test_collection_element_non_string_type(validator, type_value):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"id": "u-a", "type": type_value}]})
    assert _errors(exc_info) == {"/data/0/type": "The selected data.0.type is invalid."}


def test_collection_element_list_valued_id(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"id": ["u-a"], "type": "users"}]})
    assert _errors(exc_info) == {"/data/0/id": "The data.0.id must be a string."}


def test_singular_non_string_type(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": {"id": "u-a", "type": ["users"]}})
    assert _errors(exc_info) == {"/data/type": "The selected data.type is invalid."}


def test_collection_element_unregistered_type(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": [{"id": "1", "type": "widgets"}]})
    assert _errors(exc_info) == {"/data/0/type": "The selected data.0.type is invalid."}


def test_collection_errors_are_collected_across_elements(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship(
            {"data": [{"id": "1", "type": "users"}, {"type": "users"}, {"id": "3"}]}
        )
    assert set(_errors(exc_info)) == {"/data/1/id", "/data/2/type"}


def test_singular_fields_required_together(validator):
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_relationship({"data": {"id": "1"}})
    assert _errors(exc_info) == {"/data/type": "The data.type field is required."}


def test_valid_documents(validator):
    assert validator.validate_relationship({"data": {"id": "1", "type": "users"}}) == (
        ResourceIdentifier(type="users", id="1")
    )
    assert validator.validate_relationship(
        {"data": [{"id": "1", "type": "users"}, {"id": "2", "type": "users"}]}
    ) == [ResourceIdentifier(type="users", id="1"), ResourceIdentifier(type="users", id="2")]


# ─── Pivot flags ────────────────────────────────────────────────


def test_pivot_flags_absent_meta(validator):
    assert validator.validate_pivot_flags({"data": []}, ("is_supervisor",)) is None


def test_pivot_flags_are_cleaned_as_booleans(validator):
    payload = {"data": [], "meta": {"is_supervisor": "false", "colour": "red"}}
    assert validator.validate_pivot_flags(payload, ("is_supervisor",)) == {"is_supervisor": False}


def test_pivot_flags_reject_non_booleans(validator):
    payload = {"data": [], "meta": {"is_supervisor": "yes"}}
    with pytest.raises(ValidationFailed) as exc_info:
        validator.validate_pivot_flags(payload, ("is_supervisor",))
    assert _errors(exc_info) == {
        "/meta/is_supervisor": "The meta.is_supervisor field must be true or false.",
    }
