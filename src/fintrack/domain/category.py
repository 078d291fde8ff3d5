"""Category domain service."""

from typing import Any, Optional
from fintrack.database.base import Database
from fintrack.domain.entities import Category as CategoryEntity
from fintrack.domain.errors import ConflictError, NotFoundError, ValidationError, category_path_not_found


class CategoryService:
    """Service for managing categories."""

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
            ValidationError: If the name is empty or contains '>'
            NotFoundError: If parent category doesn't exist
            ConflictError: If the category already exists under the parent
        """
        name = name.strip()
        if not name or ">" in name:
            raise ValidationError("Category name must be non-empty and cannot contain '>'")

        parent_id = None
        path = name
        if parent_path is not None:
            parent = self.db.get_category_by_path(parent_path)
            if parent is None:
                raise NotFoundError(category_path_not_found(parent_path))
            parent_id = parent.id
            path = f"{parent_path} > {name}"

        if self.db.get_category_by_path(path) is not None:
            raise ConflictError(f"Category '{path}' already exists")

        return self.db.create_category(name=name, parent_id=parent_id)

    def get_category(self, category_id: int) -> Optional[CategoryEntity]:
        """Get category by ID."""
        return self.db.get_category(category_id)

    def get_category_by_path(self, path: str) -> Optional[CategoryEntity]:
        """Get category by path (e.g., "Food & Dining > Groceries")."""
        return self.db.get_category_by_path(path)

    def list_categories(self, parent_id: Optional[int] = None) -> list[CategoryEntity]:
        """List categories directly under a parent (top-level when None)."""
        return self.db.list_categories(parent_id=parent_id)

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
            empty string if the category does not exist
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
