"""
Tests for the category listing presenter.
"""

from unittest.mock import Mock

import pytest

from core.authorization import AuthorizationService
from core.data_source import DataSource
from core.error_handler import DataSourceError, ErrorHandler
from logic.category_listing_presenter import CategoryListingPresenter, ContextMenuOperation
from logic.views import CategoryListingView
from models.entities import Category


@pytest.fixture
def roots():
    return [
        Category(id=1, name="General", display_order=1),
        Category(id=2, name="Help", display_order=2),
    ]


@pytest.fixture
def view():
    listing_view = Mock(spec=CategoryListingView)
    listing_view.get_modified_categories.return_value = set()
    return listing_view


@pytest.fixture
def data_source(roots):
    source = Mock(spec=DataSource)
    source.get_root_categories.return_value = roots
    source.save_category.side_effect = lambda c: Category(
        id=99, name=c.name, description=c.description,
        display_order=c.display_order, parent_id=c.parent_id
    )
    return source


@pytest.fixture
def authorization():
    auth = Mock(spec=AuthorizationService)
    auth.may_edit_categories.return_value = True
    auth.may_edit.return_value = True
    auth.may_delete.return_value = False
    return auth


@pytest.fixture
def presenter(view, data_source, authorization):
    return CategoryListingPresenter(view, data_source, authorization, ErrorHandler())


class TestListing:
    """Tests for loading and displaying a level of the tree."""

    def test_init_shows_admin_controls(self, presenter, view):
        presenter.init()

        view.set_admin_controls_visible.assert_called_once_with(True)

    def test_load_root_level(self, presenter, view, roots):
        presenter.load_root(None)

        view.display_categories.assert_called_once_with(roots)
        assert presenter.get_current_root() is None

    def test_load_sub_level(self, presenter, view, data_source, roots):
        children = [Category(id=3, name="Install", display_order=1, parent_id=2)]
        data_source.get_sub_categories.return_value = children

        presenter.load_root(roots[1])

        data_source.get_sub_categories.assert_called_once_with(roots[1])
        view.display_categories.assert_called_once_with(children)

    def test_set_categories_adopts_parent(self, presenter, data_source, roots):
        children = [Category(id=3, name="Install", display_order=1, parent_id=2)]
        data_source.get_category.return_value = roots[1]

        presenter.set_categories(children)

        data_source.get_category.assert_called_once_with(2)
        assert presenter.get_current_root() == roots[1]

    def test_max_display_order(self, presenter, roots):
        assert presenter.get_max_display_order() == 0

        presenter.set_categories(roots)

        assert presenter.get_max_display_order() == 2

    def test_context_menu_operations(self, presenter, authorization, roots):
        assert presenter.get_context_menu_operations(roots[0]) == [ContextMenuOperation.EDIT]

        authorization.may_delete.return_value = True

        assert presenter.get_context_menu_operations(roots[0]) == [
            ContextMenuOperation.EDIT,
            ContextMenuOperation.DELETE,
        ]

    def test_thread_counts(self, presenter, data_source, roots):
        data_source.get_thread_count.return_value = 4
        data_source.get_unread_thread_count.return_value = 1

        assert presenter.get_thread_count(roots[0]) == 4
        assert presenter.get_unread_thread_count(roots[0]) == 1


class TestRearrangement:
    """Tests for persisting a reordering."""

    def test_empty_change_set_does_nothing(self, presenter, view, data_source):
        presenter.apply_rearrangement()

        data_source.save_categories.assert_not_called()
        data_source.get_root_categories.assert_not_called()
        view.display_categories.assert_not_called()

    def test_only_modified_categories_saved(self, presenter, view, data_source, roots):
        presenter.set_categories(roots)
        moved = Category(id=2, name="Help", display_order=1)
        view.get_modified_categories.return_value = {moved}

        presenter.apply_rearrangement()

        data_source.save_categories.assert_called_once_with({moved})
        data_source.get_root_categories.assert_called_once()
        assert view.display_categories.call_count == 2

    def test_save_failure_is_reraised(self, presenter, view, data_source, roots):
        view.get_modified_categories.return_value = {roots[0]}
        data_source.save_categories.side_effect = DataSourceError("locked")

        with pytest.raises(DataSourceError):
            presenter.apply_rearrangement()

        data_source.get_root_categories.assert_not_called()

    def test_cancel_restores_last_loaded(self, presenter, view, roots):
        presenter.set_categories(roots)
        view.get_modified_categories.return_value = {roots[0]}

        presenter.cancel_rearrangement()

        assert view.display_categories.call_count == 2
        view.display_categories.assert_called_with(roots)

    def test_cancel_without_changes(self, presenter, view, roots):
        presenter.set_categories(roots)

        presenter.cancel_rearrangement()

        view.display_categories.assert_called_once()


class TestMutations:
    """Tests for create, edit and delete."""

    def test_create_new_category(self, presenter, view, data_source, roots):
        presenter.set_categories(roots)

        created = presenter.create_new_category("Offtopic", "Everything else")

        saved = data_source.save_category.call_args[0][0]
        assert saved.id is None
        assert saved.display_order == 3
        assert saved.parent_id is None
        assert saved.description == "Everything else"
        assert created.id == 99
        view.hide_create_category_form.assert_called_once()
        data_source.get_root_categories.assert_called_once()

    def test_create_first_sub_category(self, presenter, data_source, roots):
        data_source.get_sub_categories.return_value = []
        presenter.load_root(roots[0])

        presenter.create_new_category("Child")

        saved = data_source.save_category.call_args[0][0]
        assert saved.display_order == 1
        assert saved.parent_id == 1

    def test_create_requires_name(self, presenter, data_source):
        with pytest.raises(ValueError):
            presenter.create_new_category("  ")

        data_source.save_category.assert_not_called()

    def test_edit_reloads(self, presenter, view, data_source, roots):
        presenter.edit(roots[0], "Renamed", "New text")

        saved = data_source.save_category.call_args[0][0]
        assert saved.name == "Renamed"
        assert saved.description == "New text"
        view.display_categories.assert_called_once_with(roots)

    def test_failed_edit_leaves_category_untouched(self, presenter, data_source, roots):
        data_source.save_category.side_effect = DataSourceError("locked")

        with pytest.raises(DataSourceError):
            presenter.edit(roots[0], "Renamed", "New text")

        assert roots[0].name == "General"
        assert roots[0].description == ""

    def test_delete_reloads(self, presenter, view, data_source, roots):
        presenter.delete(roots[1])

        data_source.delete_category.assert_called_once_with(roots[1])
        data_source.get_root_categories.assert_called_once()
        view.display_categories.assert_called_once()
