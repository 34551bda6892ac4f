"""
Category Listing Presenter

Administrative view of one level of the category tree: rearranging,
creating, editing and deleting the categories under ``current_root``.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import List, Optional

from core.authorization import AuthorizationService
from core.data_source import DataSource
from core.error_handler import DataSourceError, ErrorHandler
from logic.presenter import Presenter
from logic.views import CategoryListingView
from models.entities import Category


logger = logging.getLogger(__name__)


class ContextMenuOperation(Enum):
    """Per-category actions offered in the listing."""
    EDIT = "edit"
    DELETE = "delete"


class CategoryListingPresenter(Presenter[CategoryListingView]):
    """
    Presenter behind the category listing.

    ``current_root`` is the parent of the listed categories, None for the
    root level. After every write the listing is reloaded from the data
    source, which owns the final display order.
    """

    def __init__(
        self,
        view: CategoryListingView,
        data_source: DataSource,
        authorization: AuthorizationService,
        error_handler: Optional[ErrorHandler] = None
    ):
        super().__init__(view, data_source, authorization, error_handler)
        self.categories: List[Category] = []
        self.current_root: Optional[Category] = None

    def init(self) -> None:
        self.view.set_admin_controls_visible(self.authorization.may_edit_categories())

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def set_categories(self, categories: List[Category]) -> None:
        """
        Display a sibling set and adopt its parent as the current root.

        Args:
            categories: Categories sharing one parent
        """
        self.categories = list(categories)
        if self.categories:
            parent_id = self.categories[0].parent_id
            if parent_id is None:
                self.current_root = None
            elif self.current_root is None or self.current_root.id != parent_id:
                self.current_root = self.data_source.get_category(parent_id)
        self.view.display_categories(self.categories)

    def load_root(self, root: Optional[Category]) -> None:
        """Show the children of ``root``, or the root categories for None."""
        self.current_root = root
        self._reload()

    def get_current_root(self) -> Optional[Category]:
        return self.current_root

    def get_sub_categories(self, category: Category) -> List[Category]:
        return self.data_source.get_sub_categories(category)

    def _reload(self) -> None:
        try:
            if self.current_root is None:
                categories = self.data_source.get_root_categories()
            else:
                categories = self.data_source.get_sub_categories(self.current_root)
        except DataSourceError as e:
            self._report(e, "reload categories")
            raise
        self.categories = categories
        self.view.display_categories(categories)

    def get_thread_count(self, category: Category) -> int:
        return self.data_source.get_thread_count(category)

    def get_unread_thread_count(self, category: Category) -> int:
        return self.data_source.get_unread_thread_count(category)

    def get_max_display_order(self) -> int:
        """Highest display order among the listed categories, 0 if none."""
        return max((category.display_order for category in self.categories), default=0)

    def get_context_menu_operations(self, category: Category) -> List[ContextMenuOperation]:
        operations = []
        if self.authorization.may_edit(category):
            operations.append(ContextMenuOperation.EDIT)
        if self.authorization.may_delete(category):
            operations.append(ContextMenuOperation.DELETE)
        return operations

    # ------------------------------------------------------------------
    # Rearranging
    # ------------------------------------------------------------------

    def apply_rearrangement(self) -> None:
        """Persist the categories the view reports as moved, then reload."""
        modified = self.view.get_modified_categories()
        logger.debug(f"Saving {len(modified)} modified categories")
        if not modified:
            return

        try:
            self.data_source.save_categories(modified)
        except DataSourceError as e:
            self._report(e, "rearrange categories")
            raise
        self._reload()

    def cancel_rearrangement(self) -> None:
        """Restore the last loaded order if the user moved anything."""
        if self.view.get_modified_categories():
            self.view.display_categories(self.categories)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_new_category(self, name: str, description: str = "") -> Category:
        """
        Create a category at the end of the current level.

        Args:
            name: Category name
            description: Optional description

        Returns:
            The saved category

        Raises:
            ValueError: If the name is blank
            DataSourceError: If saving fails
        """
        if not name or not name.strip():
            raise ValueError("Category name must not be empty")

        category = Category(
            id=None,
            name=name.strip(),
            description=description,
            display_order=self.get_max_display_order() + 1,
            parent_id=self.current_root.id if self.current_root else None
        )
        try:
            saved = self.data_source.save_category(category)
        except DataSourceError as e:
            self._report(e, "create category")
            raise

        logger.info(f"Created category {saved.id}: {saved.name}")
        self.view.hide_create_category_form()
        self._reload()
        return saved

    def edit(self, category: Category, name: str, description: str) -> None:
        logger.debug(
            f"Editing {category.name} -> {name}, {category.description} -> {description}"
        )
        edited = replace(category, name=name, description=description)
        try:
            self.data_source.save_category(edited)
        except DataSourceError as e:
            self._report(e, "edit category", category_id=category.id)
            raise
        self._reload()

    def delete(self, category: Category) -> None:
        logger.debug(f"Deleting {category.name}")
        try:
            self.data_source.delete_category(category)
        except DataSourceError as e:
            self._report(e, "delete category", category_id=category.id)
            raise
        self._reload()
