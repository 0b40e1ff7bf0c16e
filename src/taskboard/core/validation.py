"""Request validation for resource and relationship documents.

Rules are registry data written in a pipe-separated expression language
(``required|string|max:255``). Each field reports at most one error, the
first rule it fails; all fields are checked so a client sees every problem
in one response. Pointers are JSON pointers into the request body
(``/data/attributes/title``, ``/data/0/id``).

Uniqueness is the only rule that needs the persistence layer; it is
delegated to an async predicate and only evaluated for values that passed
every other rule.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import StrictStr, TypeAdapter, ValidationError

from taskboard.core.errors import FieldError, ValidationFailed
from taskboard.core.registry import ResourceRegistry
from taskboard.schemas.jsonapi import ResourceIdentifier

UniquePredicate = Callable[[str, str, Any, str | None], Awaitable[bool]]
"""``(table, column, value, ignore_id) -> True if no other row holds value``."""

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_STRING = TypeAdapter(StrictStr)
_INTEGER = TypeAdapter(int)

# PHP date() tokens used in rule expressions, mapped to strptime directives.
_DATE_TOKENS = {
    "Y": "%Y",
    "m": "%m",
    "d": "%d",
    "H": "%H",
    "i": "%M",
    "s": "%S",
}

_TRUE_VALUES = (True, 1, "1", "true")
_FALSE_VALUES = (False, 0, "0", "false")

_MISSING = object()


@dataclass(frozen=True)
class Rule:
    name: str
    args: tuple[str, ...] = ()


def parse_rules(expression: str) -> list[Rule]:
    """Split ``"required|max:255|in:a,b"`` into Rule objects."""
    rules = []
    for token in expression.split("|"):
        token = token.strip()
        if not token:
            continue
        name, _, raw_args = token.partition(":")
        args = tuple(a.strip() for a in raw_args.split(",")) if raw_args else ()
        rules.append(Rule(name, args))
    return rules


def to_pointer(path: str) -> str:
    """``data.attributes.title`` -> ``/data/attributes/title``."""
    return "/" + "/".join(path.split("."))


def php_date_format(fmt: str) -> str:
    return "".join(_DATE_TOKENS.get(ch, ch) for ch in fmt)


def _lookup(document: Any, path: str) -> Any:
    current = document
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return _MISSING
    return current


def _is_blank(value: Any) -> bool:
    return value is None or value is _MISSING or value == "" or value == [] or value == {}


def _size(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, list, dict)):
        return len(value)
    return None


class _FieldCheck:
    """Evaluates one field's rule chain, stopping at the first failure."""

    def __init__(self, document: Any, path: str, rules: list[Rule]) -> None:
        self.document = document
        self.path = path
        self.rules = rules
        self.value = _lookup(document, path)
        self.cleaned: Any = self.value
        self.unique: Rule | None = None

    @property
    def present(self) -> bool:
        return self.value is not _MISSING

    def run(self) -> str | None:
        names = {r.name for r in self.rules}
        if "sometimes" in names and not self.present:
            return None
        if "present" in names and not self.present:
            return f"The {self.path} field must be present."
        if "required" in names and _is_blank(self.value):
            return f"The {self.path} field is required."
        if not self.present:
            return None
        if self.value == "":
            self.value = self.cleaned = None
        if self.value is None and "nullable" in names:
            return None

        for rule in self.rules:
            check = getattr(self, f"_rule_{rule.name}", None)
            if check is None:
                continue
            message = check(rule)
            if message:
                return message
        return None

    # -- type rules --------------------------------------------------

    def _rule_string(self, rule: Rule) -> str | None:
        try:
            _STRING.validate_python(self.value)
        except ValidationError:
            return f"The {self.path} must be a string."
        return None

    def _rule_integer(self, rule: Rule) -> str | None:
        # Only JSON integers and numeric strings; booleans and floats are rejected.
        if isinstance(self.value, bool) or not isinstance(self.value, (int, str)):
            return f"The {self.path} must be an integer."
        try:
            self.cleaned = _INTEGER.validate_python(self.value)
        except ValidationError:
            return f"The {self.path} must be an integer."
        return None

    def _rule_boolean(self, rule: Rule) -> str | None:
        if self.value in _TRUE_VALUES and not isinstance(self.value, float):
            self.cleaned = True
            return None
        if self.value in _FALSE_VALUES and not isinstance(self.value, float):
            self.cleaned = False
            return None
        return f"The {self.path} field must be true or false."

    def _rule_array(self, rule: Rule) -> str | None:
        if not isinstance(self.value, (list, dict)):
            return f"The {self.path} must be an array."
        return None

    def _rule_email(self, rule: Rule) -> str | None:
        if not isinstance(self.value, str) or not _EMAIL_PATTERN.match(self.value):
            return f"The {self.path} must be a valid email address."
        return None

    def _rule_date_format(self, rule: Rule) -> str | None:
        fmt = rule.args[0] if rule.args else "Y-m-d H:i:s"
        if isinstance(self.value, str):
            try:
                self.cleaned = datetime.strptime(self.value, php_date_format(fmt))
                return None
            except ValueError:
                pass
        return f"The {self.path} does not match the format {fmt}."

    # -- constraint rules --------------------------------------------

    def _rule_min(self, rule: Rule) -> str | None:
        size = _size(self.value)
        limit = float(rule.args[0])
        if size is not None and size < limit:
            unit = " characters" if isinstance(self.value, str) else ""
            return f"The {self.path} must be at least {rule.args[0]}{unit}."
        return None

    def _rule_max(self, rule: Rule) -> str | None:
        size = _size(self.value)
        limit = float(rule.args[0])
        if size is not None and size > limit:
            unit = " characters" if isinstance(self.value, str) else ""
            return f"The {self.path} may not be greater than {rule.args[0]}{unit}."
        return None

    def _rule_in(self, rule: Rule) -> str | None:
        if str(self.value) not in rule.args:
            return f"The selected {self.path} is invalid."
        return None

    def _rule_confirmed(self, rule: Rule) -> str | None:
        if _lookup(self.document, f"{self.path}_confirmation") != self.value:
            return f"The {self.path} confirmation does not match."
        return None

    def _rule_image(self, rule: Rule) -> str | None:
        if not isinstance(self.value, str) or "." not in self.value:
            return f"The {self.path} must be an image."
        return None

    def _rule_mimes(self, rule: Rule) -> str | None:
        extension = str(self.value).rsplit(".", 1)[-1].lower()
        if extension not in rule.args:
            return f"The {self.path} must be a file of type: {', '.join(rule.args)}."
        return None

    def _rule_unique(self, rule: Rule) -> str | None:
        self.unique = rule
        return None


class RequestValidator:
    """Validates inbound resource and relationship documents against registry rules.

    Args:
        registry: The resource registry supplying rules and type names.
    """

    def __init__(self, registry: ResourceRegistry) -> None:
        self.registry = registry

    # ------------------------------------------------------------------
    # Resource documents
    # ------------------------------------------------------------------

    async def validate_resource(
        self,
        payload: Any,
        type_name: str,
        operation: str,
        *,
        resource_id: str | None = None,
        is_unique: UniquePredicate | None = None,
    ) -> dict[str, Any]:
        """Validate a create/update document and return the cleaned attributes.

        Args:
            payload: The raw request body.
            type_name: Resource type addressed by the request.
            operation: ``"create"`` or ``"update"``.
            resource_id: Id from the URL (update only); excluded from
                uniqueness checks and compared against ``data.id`` by the caller.
            is_unique: Async uniqueness predicate; uniqueness rules are
                skipped when omitted.

        Returns:
            Attribute name -> cleaned value for every attribute sent that has
            a rule for ``operation``; anything else in the document is ignored.

        Raises:
            ValidationFailed: With every field-level violation found.
        """
        self.registry.describe(type_name)
        rules = self.registry.rules_for(type_name, operation)
        errors = self._check_resource_shape(payload, type_name, operation)

        structure_ok = not any(
            e.pointer in ("/data", "/data/attributes") for e in errors
        )
        cleaned: dict[str, Any] = {}
        if structure_ok:
            checks = []
            for path, expression in rules.items():
                check = _FieldCheck(payload, path, parse_rules(expression))
                message = check.run()
                if message:
                    errors.append(FieldError(to_pointer(path), message))
                    continue
                checks.append(check)

            for check in checks:
                if (
                    check.unique is not None
                    and is_unique is not None
                    and check.present
                    and check.value is not None
                ):
                    table, column = (list(check.unique.args) + [None, None])[:2]
                    column = column or check.path.rsplit(".", 1)[-1]
                    if not await is_unique(table, column, check.cleaned, resource_id):
                        errors.append(
                            FieldError(
                                to_pointer(check.path),
                                f"The {check.path} has already been taken.",
                            )
                        )
                        continue
                if check.present and check.path.startswith("data.attributes."):
                    cleaned[check.path.removeprefix("data.attributes.")] = check.cleaned

        if errors:
            raise ValidationFailed(errors)
        return cleaned

    def _check_resource_shape(
        self, payload: Any, type_name: str, operation: str
    ) -> list[FieldError]:
        data = payload.get("data", _MISSING) if isinstance(payload, Mapping) else _MISSING
        if data is _MISSING or data is None:
            return [FieldError("/data", "The data field is required.")]
        if not isinstance(data, Mapping):
            return [FieldError("/data", "The data must be an object.")]

        errors = []
        if "type" not in data or _is_blank(data["type"]):
            errors.append(FieldError("/data/type", "The data.type field is required."))
        elif data["type"] != type_name:
            errors.append(FieldError("/data/type", "The selected data.type is invalid."))

        if operation == "update":
            if "id" not in data or _is_blank(data["id"]):
                errors.append(FieldError("/data/id", "The data.id field is required."))
            elif not isinstance(data["id"], str):
                errors.append(FieldError("/data/id", "The data.id must be a string."))

        attributes = data.get("attributes", _MISSING)
        if attributes is _MISSING or attributes is None:
            errors.append(
                FieldError("/data/attributes", "The data.attributes field is required.")
            )
        elif not isinstance(attributes, Mapping):
            errors.append(
                FieldError("/data/attributes", "The data.attributes must be an object.")
            )
        return errors

    # ------------------------------------------------------------------
    # Relationship documents
    # ------------------------------------------------------------------

    def validate_relationship(
        self, payload: Any
    ) -> ResourceIdentifier | list[ResourceIdentifier] | None:
        """Validate a relationship document ``{"data": null | {...} | [...]}``.

        A missing ``data`` member is an error; ``null``, ``{}`` and ``[]``
        all mean "clear the relationship".

        Returns:
            The identifier (to-one shape), the identifier list (to-many
            shape), or None.

        Raises:
            ValidationFailed: With every element-level violation found.
        """
        if not isinstance(payload, Mapping) or "data" not in payload:
            raise ValidationFailed([FieldError("/data", "The data field must be present.")])

        data = payload["data"]
        if data is None:
            return None
        if isinstance(data, list):
            return self._validate_identifier_list(data)
        if isinstance(data, Mapping):
            return self._validate_single_identifier(data)
        raise ValidationFailed([FieldError("/data", "The data must be an array.")])

    def _validate_identifier_list(self, data: list) -> list[ResourceIdentifier]:
        errors: list[FieldError] = []
        identifiers = []
        for index, member in enumerate(data):
            prefix = f"data.{index}"
            if not isinstance(member, Mapping):
                errors.append(FieldError(to_pointer(prefix), f"The {prefix} must be an array."))
                continue
            member_errors = self._identifier_errors(member, prefix, require_both=True)
            errors.extend(member_errors)
            if not member_errors:
                identifiers.append(ResourceIdentifier(type=member["type"], id=member["id"]))
        if errors:
            raise ValidationFailed(errors)
        return identifiers

    def _validate_single_identifier(self, data: Mapping) -> ResourceIdentifier | None:
        if "id" not in data and "type" not in data:
            return None
        errors = self._identifier_errors(data, "data", require_both=False)
        if errors:
            raise ValidationFailed(errors)
        return ResourceIdentifier(type=data["type"], id=data["id"])

    def _identifier_errors(
        self, member: Mapping, prefix: str, *, require_both: bool
    ) -> list[FieldError]:
        # For the singular shape each member is only required when its
        # companion member is present.
        errors = []
        id_required = require_both or "type" in member
        type_required = require_both or "id" in member

        id_path = f"{prefix}.id"
        if id_required and _is_blank(member.get("id")):
            errors.append(FieldError(to_pointer(id_path), f"The {id_path} field is required."))
        elif "id" in member and not isinstance(member["id"], str):
            errors.append(FieldError(to_pointer(id_path), f"The {id_path} must be a string."))

        type_path = f"{prefix}.type"
        if type_required and _is_blank(member.get("type")):
            errors.append(
                FieldError(to_pointer(type_path), f"The {type_path} field is required.")
            )
        elif "type" in member and (
            not isinstance(member["type"], str) or member["type"] not in self.registry
        ):
            errors.append(
                FieldError(to_pointer(type_path), f"The selected {type_path} is invalid.")
            )
        return errors

    # ------------------------------------------------------------------
    # Pivot flags
    # ------------------------------------------------------------------

    def validate_pivot_flags(self, payload: Any, flags: tuple[str, ...]) -> dict[str, bool] | None:
        """Read boolean pivot flags (``meta.is_supervisor``) from a relationship document.

        Returns None when the document carries no ``meta`` object, else the
        flags that were sent, each cleaned by the boolean rule.
        """
        meta = payload.get("meta") if isinstance(payload, Mapping) else None
        if not isinstance(meta, Mapping):
            return None

        errors = []
        values = {}
        for flag in flags:
            check = _FieldCheck(payload, f"meta.{flag}", [Rule("sometimes"), Rule("boolean")])
            message = check.run()
            if message:
                errors.append(FieldError(to_pointer(check.path), message))
            elif check.present:
                values[flag] = check.cleaned
        if errors:
            raise ValidationFailed(errors)
        return values
