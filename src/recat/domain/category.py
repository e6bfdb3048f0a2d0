"""Category domain service."""

from typing import Any, Optional
from recat.database.base import Database
from recat.domain.entities import Category as CategoryEntity
from recat.domain.errors import NotFoundError, category_path_not_found


class CategoryService:
    """Service for reading and creating categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, name: str, parent_path: Optional[str] = None) -> int:
        """Create a category.

        Args:
            name: Category name
            parent_path: Optional parent category path (e.g., "Food & Dining")

        Returns:
            Category ID

        Raises:
            NotFoundError: If parent category doesn't exist
        """
        parent_id = None
        if parent_path is not None:
            parent = self.db.get_category_by_path(parent_path)
            if parent is None:
                raise NotFoundError(f"Parent category '{parent_path}' not found")
            parent_id = parent.id

        return self.db.create_category(name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[CategoryEntity]:
        """Get category by ID."""
        return self.db.get_category(category_id)

    def get_category_by_path(self, path: str) -> Optional[CategoryEntity]:
        """Get category by path (e.g., "Food & Dining > Groceries")."""
        return self.db.get_category_by_path(path)

    def require_category_by_path(self, path: str) -> CategoryEntity:
        """Get category by path or raise.

        Raises:
            NotFoundError: If no category has that path
        """
        category = self.db.get_category_by_path(path)
        if category is None:
            raise NotFoundError(category_path_not_found(path))
        return category

    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree.

        Returns:
            List of root categories with nested children
        """
        return self.db.get_category_tree()

    def format_category_path(self, category_id: Optional[int]) -> str:
        """Get full path for a category.

        Args:
            category_id: Category ID

        Returns:
            Full category path (e.g., "Food & Dining > Groceries"), or an
            empty string for None or an unknown ID
        """
        if category_id is None:
            return ""
        cat = self.get_category(category_id)
        if cat is None:
            return ""

        path_parts = [cat.name]
        current_parent_id = cat.parent_id

        while current_parent_id is not None:
            parent = self.get_category(current_parent_id)
            if parent is None:
                break
            path_parts.append(parent.name)
            current_parent_id = parent.parent_id

        return " > ".join(reversed(path_parts))
