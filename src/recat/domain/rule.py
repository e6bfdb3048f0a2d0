"""Categorization rule domain service."""

from typing import Optional
from recat.database.base import Database
from recat.domain.entities import Predicate, Rule as RuleEntity
from recat.domain.errors import (
    NotFoundError,
    ValidationError,
    category_path_not_found,
    rule_not_found,
)
from recat.domain.predicates import validate_predicate


class RuleService:
    """Service for storing and reading categorization rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_rule(
        self,
        name: str,
        category_path: str,
        predicate: Predicate,
        is_active: bool = True,
    ) -> int:
        """Create a rule.

        Args:
            name: Rule name
            category_path: Path of the category the rule assigns
            predicate: Condition tree (see recat.domain.predicates.build_predicate)
            is_active: Whether the rule starts enabled

        Returns:
            Rule ID

        Raises:
            ValidationError: If the name is empty or the predicate is invalid
            NotFoundError: If the category doesn't exist
        """
        if not name or not name.strip():
            raise ValidationError("Rule name is required")
        validate_predicate(predicate)

        category = self.db.get_category_by_path(category_path)
        if category is None:
            raise NotFoundError(category_path_not_found(category_path))

        return self.db.create_rule(
            name=name.strip(), predicate=predicate, category_id=category.id, is_active=is_active
        )

    def get_rule(self, rule_id: int) -> Optional[RuleEntity]:
        """Get rule by ID, or None if not found."""
        return self.db.get_rule(rule_id)

    def require_rule(self, rule_id: int) -> RuleEntity:
        """Get rule by ID or raise NotFoundError."""
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, active_only: bool = False) -> list[RuleEntity]:
        """List rules in creation order."""
        return self.db.list_rules(active_only=active_only)

    def set_active(self, rule_id: int, is_active: bool) -> None:
        """Enable or disable a rule.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        self.require_rule(rule_id)
        self.db.set_rule_active(rule_id, is_active)
