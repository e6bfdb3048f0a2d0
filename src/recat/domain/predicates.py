"""Building, validating and serializing rule predicates.

Predicates are stored as JSON in the rules table:

    {"all": [{"field": "merchant", "op": "contains", "value": "COFFEE"},
             {"field": "magnitude", "op": "lte", "value": "25.00"}]}

Amount values are written as strings so they round-trip as exact decimals.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from recat.domain.entities import Condition, ConditionGroup, Predicate
from recat.domain.errors import ValidationError

TEXT_FIELDS = {"merchant"}
AMOUNT_FIELDS = {"amount", "magnitude"}
ID_FIELDS = {"account"}

TEXT_OPS = {"contains", "equals", "starts_with"}
AMOUNT_OPS = {"eq", "gt", "gte", "lt", "lte"}
ID_OPS = {"eq"}

GROUP_OPERATORS = ("all", "any")
DIRECTIONS = ("inflow", "outflow")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Amount condition value '{value}' is not a number")
    if not amount.is_finite():
        raise ValidationError(f"Amount condition value '{value}' is not a number")
    return amount


def make_condition(field: str, op: str, value: Any) -> Condition:
    """Create a validated leaf condition, normalizing its value.

    Raises:
        ValidationError: If the field, operator or value is not supported
    """
    if field in TEXT_FIELDS:
        if op not in TEXT_OPS:
            raise ValidationError(f"Operator '{op}' is not supported for field '{field}'")
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Field '{field}' needs a non-empty text value")
        return Condition(field=field, op=op, value=value.strip())

    if field in AMOUNT_FIELDS:
        if op not in AMOUNT_OPS:
            raise ValidationError(f"Operator '{op}' is not supported for field '{field}'")
        return Condition(field=field, op=op, value=_to_decimal(value))

    if field in ID_FIELDS:
        if op not in ID_OPS:
            raise ValidationError(f"Operator '{op}' is not supported for field '{field}'")
        try:
            return Condition(field=field, op=op, value=int(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Field '{field}' needs an integer ID, got '{value}'")

    raise ValidationError(f"Unknown condition field '{field}'")


def count_conditions(predicate: Predicate) -> int:
    """Count leaf conditions in a predicate tree."""
    if isinstance(predicate, Condition):
        return 1
    return sum(count_conditions(child) for child in predicate.conditions)


def validate_predicate(predicate: Predicate) -> Predicate:
    """Validate a predicate tree and return it.

    A rule must test at least one field; a tree with no leaf conditions
    would match every transaction.

    Raises:
        ValidationError: If the tree is malformed or has no conditions
    """
    _validate_node(predicate)
    if count_conditions(predicate) == 0:
        raise ValidationError("Rule must have at least one condition")
    return predicate


def _validate_node(node: Any) -> None:
    if isinstance(node, Condition):
        make_condition(node.field, node.op, node.value)
        return
    if isinstance(node, ConditionGroup):
        if node.operator not in GROUP_OPERATORS:
            raise ValidationError(
                f"Unknown group operator '{node.operator}'. Use 'all' or 'any'"
            )
        for child in node.conditions:
            _validate_node(child)
        return
    raise ValidationError(f"Invalid predicate node: {node!r}")


def build_predicate(
    merchant_contains: Optional[str] = None,
    merchant_exact: Optional[str] = None,
    amount_min: Optional[Decimal] = None,
    amount_max: Optional[Decimal] = None,
    account_id: Optional[int] = None,
    direction: Optional[str] = None,
    match: str = "all",
) -> ConditionGroup:
    """Build a predicate from simple rule options.

    Args:
        merchant_contains: Case-insensitive substring of the merchant text
        merchant_exact: Case-insensitive exact merchant text
        amount_min: Minimum absolute amount (inclusive)
        amount_max: Maximum absolute amount (inclusive)
        account_id: Account the transaction must belong to
        direction: "inflow" (amount > 0) or "outflow" (amount < 0)
        match: "all" to require every condition, "any" to require one

    Returns:
        Validated condition group

    Raises:
        ValidationError: If no condition is given or an option is invalid
    """
    if match not in GROUP_OPERATORS:
        raise ValidationError(f"Unknown match mode '{match}'. Use 'all' or 'any'")

    conditions: list[Predicate] = []
    if merchant_contains:
        conditions.append(make_condition("merchant", "contains", merchant_contains))
    if merchant_exact:
        conditions.append(make_condition("merchant", "equals", merchant_exact))
    if amount_min is not None:
        conditions.append(make_condition("magnitude", "gte", amount_min))
    if amount_max is not None:
        conditions.append(make_condition("magnitude", "lte", amount_max))
    if amount_min is not None and amount_max is not None:
        if _to_decimal(amount_min) > _to_decimal(amount_max):
            raise ValidationError(
                f"Minimum amount {amount_min} is greater than maximum amount {amount_max}"
            )
    if account_id is not None:
        conditions.append(make_condition("account", "eq", account_id))
    if direction is not None:
        if direction not in DIRECTIONS:
            raise ValidationError(
                f"Unknown direction '{direction}'. Use 'inflow' or 'outflow'"
            )
        op = "gt" if direction == "inflow" else "lt"
        conditions.append(make_condition("amount", op, Decimal("0")))

    return validate_predicate(ConditionGroup(operator=match, conditions=tuple(conditions)))


def predicate_to_dict(predicate: Predicate) -> dict[str, Any]:
    """Convert a predicate tree to plain JSON-compatible data."""
    if isinstance(predicate, Condition):
        value = predicate.value
        if isinstance(value, Decimal):
            value = str(value)
        return {"field": predicate.field, "op": predicate.op, "value": value}
    return {predicate.operator: [predicate_to_dict(child) for child in predicate.conditions]}


def predicate_from_dict(data: Any) -> Predicate:
    """Parse plain data produced by predicate_to_dict.

    Raises:
        ValidationError: If the data does not describe a predicate
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid predicate data: {data!r}")

    if "field" in data:
        try:
            return make_condition(data["field"], data["op"], data["value"])
        except KeyError as e:
            raise ValidationError(f"Condition is missing {e}")

    groups = [key for key in GROUP_OPERATORS if key in data]
    if len(groups) != 1 or len(data) != 1:
        raise ValidationError(f"Invalid predicate data: {data!r}")
    operator = groups[0]
    children = data[operator]
    if not isinstance(children, list):
        raise ValidationError(f"Group '{operator}' must hold a list of conditions")
    return ConditionGroup(
        operator=operator,
        conditions=tuple(predicate_from_dict(child) for child in children),
    )


def dumps_predicate(predicate: Predicate) -> str:
    """Serialize a predicate tree to a JSON string."""
    return json.dumps(predicate_to_dict(predicate), sort_keys=True)


def loads_predicate(text: str) -> Predicate:
    """Parse a predicate tree from a JSON string.

    Raises:
        ValidationError: If the text is not valid predicate JSON
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid predicate JSON: {e}")
    return predicate_from_dict(data)


def describe_predicate(predicate: Predicate) -> str:
    """Return a short human-readable description of a predicate."""
    if isinstance(predicate, Condition):
        if predicate.field == "merchant":
            verb = {"contains": "contains", "equals": "is", "starts_with": "starts with"}[predicate.op]
            return f"merchant {verb} '{predicate.value}'"
        symbol = {"eq": "=", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}[predicate.op]
        return f"{predicate.field} {symbol} {predicate.value}"

    joiner = " and " if predicate.operator == "all" else " or "
    parts = []
    for child in predicate.conditions:
        text = describe_predicate(child)
        if isinstance(child, ConditionGroup) and len(child.conditions) > 1:
            text = f"({text})"
        parts.append(text)
    return joiner.join(parts)
