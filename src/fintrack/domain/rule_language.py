"""Rule language: condition trees and the YAML rule document format.

A rule document looks like::

    name: Coffee shops
    priority: 10
    category: "Food > Restaurants"
    tags: [coffee]
    conditions:
      any_of:
        - {field: description, operator: contains, value: coffee}
        - all_of:
            - {field: amount, operator: between, value: [-20, -1]}
            - not: {field: date, operator: day_of_week, value: 7}

A condition is either a leaf ``Predicate`` or one of the combinators
``AllOf``, ``AnyOf`` and ``Not``. A plain list under ``conditions`` means
``all_of``. Every problem with a document is reported as a
``RuleParseError`` when the rule is saved, so evaluation never has to
second-guess a stored rule.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

import yaml

from fintrack.domain.errors import RuleParseError


MAX_DEPTH = 32


class Field(str, Enum):
    """Transaction fields a predicate can inspect."""

    DESCRIPTION = "description"
    AMOUNT = "amount"
    DATE = "date"


class Operator(str, Enum):
    """Predicate operators."""

    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    GT = "gt"
    LT = "lt"
    BETWEEN = "between"
    DAY_OF_WEEK = "day_of_week"
    DAY_OF_MONTH = "day_of_month"


FIELD_OPERATORS: dict[Field, frozenset[Operator]] = {
    Field.DESCRIPTION: frozenset(
        {Operator.CONTAINS, Operator.EQUALS, Operator.STARTS_WITH, Operator.ENDS_WITH, Operator.REGEX}
    ),
    Field.AMOUNT: frozenset({Operator.EQUALS, Operator.GT, Operator.LT, Operator.BETWEEN}),
    Field.DATE: frozenset(
        {
            Operator.EQUALS,
            Operator.GT,
            Operator.LT,
            Operator.BETWEEN,
            Operator.DAY_OF_WEEK,
            Operator.DAY_OF_MONTH,
        }
    ),
}

COMBINATORS = ("all_of", "any_of", "not")
DOCUMENT_KEYS = {"name", "priority", "conditions", "category", "category_id", "tags", "is_active"}


@dataclass(frozen=True)
class Predicate:
    """Leaf condition comparing one transaction field against a value.

    ``value`` is already normalized for its field: a lower-cased string or a
    compiled pattern for descriptions, a ``Decimal`` for amounts, a ``date``
    (or an ``int`` for day operators) for dates, and a ``(low, high)`` tuple
    for ``between``.
    """

    field: Field
    operator: Operator
    value: Any


@dataclass(frozen=True)
class AllOf:
    children: tuple["Condition", ...]


@dataclass(frozen=True)
class AnyOf:
    children: tuple["Condition", ...]


@dataclass(frozen=True)
class Not:
    child: "Condition"


Condition = Union[Predicate, AllOf, AnyOf, Not]


@dataclass(frozen=True)
class RuleDefinition:
    """Parsed content of a rule document, before it is stored."""

    name: str
    priority: int
    condition: Condition
    category_id: Optional[int]
    category_path: Optional[str]
    tags: tuple[str, ...]
    is_active: bool


def parse_rule_document(
    text: str,
    name: Optional[str] = None,
    priority: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> RuleDefinition:
    """Parse a YAML rule document.

    Explicit arguments take precedence over the matching document keys, so a
    caller can store the same document under a different name or priority.

    Args:
        text: YAML rule document
        name: Optional rule name override
        priority: Optional priority override
        is_active: Optional active flag override

    Returns:
        Parsed rule definition

    Raises:
        RuleParseError: If the document is not a valid rule
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleParseError(name, f"invalid YAML: {e}") from e

    if not isinstance(doc, dict):
        raise RuleParseError(name, "rule document must be a mapping")

    rule_name = name if name is not None else doc.get("name")
    if not isinstance(rule_name, str) or not rule_name.strip():
        raise RuleParseError(None, "rule must have a name")
    rule_name = rule_name.strip()

    unknown = set(doc) - DOCUMENT_KEYS
    if unknown:
        raise RuleParseError(rule_name, f"unknown keys: {', '.join(sorted(map(str, unknown)))}")

    if priority is None:
        priority = doc.get("priority", 0)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise RuleParseError(rule_name, "priority must be an integer")

    if is_active is None:
        is_active = doc.get("is_active", True)
    if not isinstance(is_active, bool):
        raise RuleParseError(rule_name, "is_active must be true or false")

    if "conditions" not in doc or doc["conditions"] is None:
        raise RuleParseError(rule_name, "rule must have at least one condition")
    condition = parse_condition(doc["conditions"], rule_name)

    category_id = doc.get("category_id")
    category_path = doc.get("category")
    if category_id is not None and category_path is not None:
        raise RuleParseError(rule_name, "use either category or category_id, not both")
    if category_id is not None and (isinstance(category_id, bool) or not isinstance(category_id, int)):
        raise RuleParseError(rule_name, "category_id must be an integer")
    if category_path is not None and (not isinstance(category_path, str) or not category_path.strip()):
        raise RuleParseError(rule_name, "category must be a non-empty category path")

    tags = _parse_tags(doc.get("tags"), rule_name)
    if category_id is None and category_path is None and not tags:
        raise RuleParseError(rule_name, "rule must assign a category or at least one tag")

    return RuleDefinition(
        name=rule_name,
        priority=priority,
        condition=condition,
        category_id=category_id,
        category_path=category_path.strip() if category_path else None,
        tags=tags,
        is_active=is_active,
    )


def parse_condition(node: Any, rule_name: Optional[str] = None) -> Condition:
    """Parse a condition tree from its YAML representation.

    Raises:
        RuleParseError: On unknown fields or operators, type mismatches,
            malformed or cyclic nesting
    """
    return _parse_node(node, rule_name, depth=0, path=())


def _parse_node(node: Any, rule_name: Optional[str], depth: int, path: tuple[int, ...]) -> Condition:
    if depth > MAX_DEPTH:
        raise RuleParseError(rule_name, f"conditions are nested deeper than {MAX_DEPTH} levels")
    # YAML aliases can build self-referencing structures
    if isinstance(node, (dict, list)):
        if id(node) in path:
            raise RuleParseError(rule_name, "conditions contain a cyclic reference")
        path = path + (id(node),)

    if isinstance(node, list):
        return AllOf(_parse_children(node, "all_of", rule_name, depth, path))

    if not isinstance(node, dict):
        raise RuleParseError(rule_name, f"condition must be a mapping or a list, got {node!r}")

    combinators = [key for key in node if key in COMBINATORS]
    if combinators:
        if len(node) != 1:
            raise RuleParseError(
                rule_name, f"'{combinators[0]}' must be the only key of its condition"
            )
        key = combinators[0]
        if key == "not":
            child = node["not"]
            if not isinstance(child, dict):
                raise RuleParseError(rule_name, "'not' takes a single condition")
            return Not(_parse_node(child, rule_name, depth + 1, path))
        children = _parse_children(node[key], key, rule_name, depth, path)
        return AllOf(children) if key == "all_of" else AnyOf(children)

    return _parse_predicate(node, rule_name)


def _parse_children(
    items: Any, key: str, rule_name: Optional[str], depth: int, path: tuple[int, ...]
) -> tuple[Condition, ...]:
    if not isinstance(items, list) or not items:
        raise RuleParseError(rule_name, f"'{key}' takes a non-empty list of conditions")
    return tuple(_parse_node(item, rule_name, depth + 1, path) for item in items)


def _parse_predicate(node: dict, rule_name: Optional[str]) -> Predicate:
    keys = set(node)
    if keys != {"field", "operator", "value"}:
        raise RuleParseError(
            rule_name,
            "a predicate needs exactly the keys field, operator and value "
            f"(got {', '.join(sorted(map(str, keys)))})",
        )

    try:
        field = Field(node["field"])
    except ValueError:
        raise RuleParseError(
            rule_name,
            f"unknown field '{node['field']}'. Must be one of: {', '.join(f.value for f in Field)}",
        ) from None

    try:
        operator = Operator(node["operator"])
    except ValueError:
        raise RuleParseError(rule_name, f"unknown operator '{node['operator']}'") from None

    if operator not in FIELD_OPERATORS[field]:
        allowed = ", ".join(sorted(op.value for op in FIELD_OPERATORS[field]))
        raise RuleParseError(
            rule_name,
            f"operator '{operator.value}' cannot be used with field '{field.value}' (allowed: {allowed})",
        )

    value = _coerce_value(field, operator, node["value"], rule_name)
    return Predicate(field=field, operator=operator, value=value)


def _coerce_value(field: Field, operator: Operator, raw: Any, rule_name: Optional[str]) -> Any:
    if operator == Operator.BETWEEN:
        if not isinstance(raw, list) or len(raw) != 2:
            raise RuleParseError(rule_name, "'between' takes a list of two bounds")
        low = _coerce_scalar(field, raw[0], rule_name)
        high = _coerce_scalar(field, raw[1], rule_name)
        if low > high:
            raise RuleParseError(rule_name, f"'between' lower bound {low} is above upper bound {high}")
        return (low, high)

    if operator == Operator.DAY_OF_WEEK:
        return _coerce_day(raw, 1, 7, operator, rule_name)
    if operator == Operator.DAY_OF_MONTH:
        return _coerce_day(raw, 1, 31, operator, rule_name)

    if operator == Operator.REGEX:
        if not isinstance(raw, str) or not raw:
            raise RuleParseError(rule_name, "'regex' takes a non-empty pattern string")
        try:
            return re.compile(raw, re.IGNORECASE)
        except re.error as e:
            raise RuleParseError(rule_name, f"invalid regex {raw!r}: {e}") from e

    return _coerce_scalar(field, raw, rule_name)


def _coerce_scalar(field: Field, raw: Any, rule_name: Optional[str]) -> Any:
    if field == Field.DESCRIPTION:
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            raise RuleParseError(rule_name, f"description value must be text, got {raw!r}")
        text = str(raw).casefold()
        if not text:
            raise RuleParseError(rule_name, "description value cannot be empty")
        return text

    if field == Field.AMOUNT:
        if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
            raise RuleParseError(rule_name, f"amount value must be a number, got {raw!r}")
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            raise RuleParseError(rule_name, f"amount value must be a number, got {raw!r}") from None
        if not value.is_finite():
            raise RuleParseError(rule_name, f"amount value must be finite, got {raw!r}")
        return value

    # Field.DATE; YAML already turns ISO dates into date objects
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw.strip())
        except ValueError:
            pass
    raise RuleParseError(rule_name, f"date value must be an ISO date (YYYY-MM-DD), got {raw!r}")


def _coerce_day(raw: Any, low: int, high: int, operator: Operator, rule_name: Optional[str]) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int) or not low <= raw <= high:
        raise RuleParseError(
            rule_name, f"'{operator.value}' takes an integer between {low} and {high}, got {raw!r}"
        )
    return raw


def _parse_tags(raw: Any, rule_name: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise RuleParseError(rule_name, "tags must be a list of strings")
    tags: list[str] = []
    for tag in raw:
        if not isinstance(tag, str) or not tag.strip():
            raise RuleParseError(rule_name, f"invalid tag {tag!r}")
        if tag.strip() not in tags:
            tags.append(tag.strip())
    return tuple(tags)


def condition_to_data(condition: Condition) -> Any:
    """Convert a condition tree back to its document representation."""
    if isinstance(condition, Predicate):
        return {
            "field": condition.field.value,
            "operator": condition.operator.value,
            "value": _value_to_data(condition.value),
        }
    if isinstance(condition, AllOf):
        return {"all_of": [condition_to_data(c) for c in condition.children]}
    if isinstance(condition, AnyOf):
        return {"any_of": [condition_to_data(c) for c in condition.children]}
    if isinstance(condition, Not):
        return {"not": condition_to_data(condition.child)}
    raise TypeError(f"Unknown condition node: {condition!r}")


def _value_to_data(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_value_to_data(v) for v in value]
    if isinstance(value, re.Pattern):
        return value.pattern
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def describe_condition(condition: Condition) -> str:
    """Render a condition tree as a compact, human-readable expression."""
    if isinstance(condition, Predicate):
        value = _value_to_data(condition.value)
        if isinstance(value, list):
            value = f"{value[0]}..{value[1]}"
        return f"{condition.field.value} {condition.operator.value} {value}"
    if isinstance(condition, AllOf):
        return "(" + " AND ".join(describe_condition(c) for c in condition.children) + ")"
    if isinstance(condition, AnyOf):
        return "(" + " OR ".join(describe_condition(c) for c in condition.children) + ")"
    if isinstance(condition, Not):
        return f"NOT {describe_condition(condition.child)}"
    raise TypeError(f"Unknown condition node: {condition!r}")
