"""Rule matching.

Pure functions that decide whether a rule's predicate holds for a
transaction. The same code path serves preview and apply, so a previewed
match set is exactly the set apply works from.
"""

from decimal import Decimal
from typing import Optional, Union

from recat.domain.entities import Condition, ConditionGroup, Predicate, Rule, Transaction


def matches(rule: Union[Rule, Predicate], transaction: Transaction) -> bool:
    """Return True if the rule (or a bare predicate) matches the transaction.

    Conditions on a field the transaction does not have (e.g. a merchant
    condition on a transaction with no description) never match.
    """
    predicate = rule.predicate if isinstance(rule, Rule) else rule
    return _evaluate(predicate, transaction)


def _evaluate(node: Predicate, transaction: Transaction) -> bool:
    if isinstance(node, ConditionGroup):
        if node.operator == "all":
            return all(_evaluate(child, transaction) for child in node.conditions)
        if node.operator == "any":
            return any(_evaluate(child, transaction) for child in node.conditions)
        return False
    return _evaluate_condition(node, transaction)


def _field_value(field: str, transaction: Transaction) -> Optional[Union[str, int, Decimal]]:
    if field == "merchant":
        return transaction.description
    if field == "amount":
        return transaction.amount
    if field == "magnitude":
        return abs(transaction.amount) if transaction.amount is not None else None
    if field == "account":
        return transaction.account_id
    return None


def _evaluate_condition(condition: Condition, transaction: Transaction) -> bool:
    actual = _field_value(condition.field, transaction)
    if actual is None:
        return False

    if condition.field == "merchant":
        text = str(actual).casefold()
        needle = str(condition.value).casefold()
        if condition.op == "contains":
            return needle in text
        if condition.op == "equals":
            return text.strip() == needle
        if condition.op == "starts_with":
            return text.startswith(needle)
        return False

    if condition.field in ("amount", "magnitude"):
        amount = _as_decimal(actual)
        target = _as_decimal(condition.value)
        if condition.op == "eq":
            return amount == target
        if condition.op == "gt":
            return amount > target
        if condition.op == "gte":
            return amount >= target
        if condition.op == "lt":
            return amount < target
        if condition.op == "lte":
            return amount <= target
        return False

    if condition.field == "account":
        return condition.op == "eq" and actual == condition.value

    return False


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats from leaking binary rounding into the comparison
    return Decimal(str(value))
