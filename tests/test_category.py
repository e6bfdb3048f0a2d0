"""Tests for category service and commands."""

import pytest

from recat.cli.main import cli
from recat.domain.errors import NotFoundError


def test_category_list_empty(cli_runner, temp_db):
    """Test listing categories when none exist."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "category", "list"])

    assert result.exit_code == 0
    assert "No categories found" in result.output


def test_category_list(cli_runner, temp_db, sample_categories):
    """Test listing categories as a tree."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "category", "list"])

    assert result.exit_code == 0
    assert "Food & Dining" in result.output
    assert "  Coffee" in result.output


def test_category_create_root(cli_runner, temp_db):
    """Test creating a root category."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "category", "create", "Travel"])

    assert result.exit_code == 0
    assert "Created category 'Travel'" in result.output


def test_category_create_child(cli_runner, temp_db, sample_categories, reopen_db):
    """Test creating a child category."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "category", "create", "Bakery", "--parent", "Food & Dining"],
    )

    assert result.exit_code == 0
    assert "under 'Food & Dining'" in result.output
    category = reopen_db().get_category_by_path("Food & Dining > Bakery")
    assert category.parent_id == sample_categories["Food & Dining"]


def test_category_create_invalid_parent(cli_runner, temp_db):
    """Test creating a category under a missing parent fails."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "category", "create", "Bakery", "--parent", "Nope"],
    )

    assert result.exit_code == 1
    assert "not found" in result.output


class TestCategoryService:
    """Tests for CategoryService."""

    def test_format_category_path(self, category_service, sample_categories):
        coffee = sample_categories["Food & Dining > Coffee"]
        assert category_service.format_category_path(coffee) == "Food & Dining > Coffee"
        assert category_service.format_category_path(None) == ""
        assert category_service.format_category_path(999) == ""

    def test_require_category_by_path(self, category_service, sample_categories):
        category = category_service.require_category_by_path("Housing > Rent")
        assert category.id == sample_categories["Housing > Rent"]

        with pytest.raises(NotFoundError):
            category_service.require_category_by_path("Housing > Utilities")

    def test_category_tree(self, category_service, sample_categories):
        tree = category_service.get_category_tree()
        food = [node for node in tree if node["name"] == "Food & Dining"][0]
        assert sorted(child["name"] for child in food["children"]) == ["Coffee", "Dining", "Groceries"]
