"""
Category Presenter for the Agora forum layer

Drives category browsing: resolving the category from its URL id, the
subcategory and thread listings, the recent posts and my posts
pseudo-categories, and thread moderation from the listing.
"""

import logging
from typing import List, Optional

from core.authorization import AuthorizationService
from core.data_source import DataSource
from core.error_handler import (
    AuthorizationError,
    DataSourceError,
    ErrorHandler,
    NoSuchCategoryError,
)
from logic.presenter import Presenter
from logic.thread_provider import (
    CategoryThreadProvider,
    MyPostsThreadProvider,
    RecentPostsThreadProvider,
    ThreadProvider,
)
from logic.views import CategoryView
from models.entities import (
    Category,
    CategorySelection,
    DiscussionThread,
    MyPostsCategory,
    RecentPostsCategory,
    SpecialCategory,
    resolve_category_id,
)


logger = logging.getLogger(__name__)


class CategoryPresenter(Presenter[CategoryView]):
    """
    Presenter behind the category view.

    ``current_category`` is a Category, one of the pseudo-categories, or None
    when the requested id did not resolve.

    Mutations log data source failures and re-raise them; only a missing
    category is turned into a targeted message for the view.
    """

    def __init__(
        self,
        view: CategoryView,
        data_source: DataSource,
        authorization: AuthorizationService,
        error_handler: Optional[ErrorHandler] = None
    ):
        super().__init__(view, data_source, authorization, error_handler)
        self.current_category: Optional[CategorySelection] = None

        self.default_threads_provider = CategoryThreadProvider(
            data_source, lambda: self.current_category
        )
        self.recent_posts_provider = RecentPostsThreadProvider(data_source)
        self.my_posts_provider = MyPostsThreadProvider(data_source)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def set_current_category_by_id(self, category_id: str) -> None:
        """
        Show the category identified by a URL id.

        Args:
            category_id: Numeric category id or a pseudo-category id
        """
        try:
            try:
                key = resolve_category_id(category_id)
            except ValueError:
                logger.error(f"Invalid category id format: {category_id}")
                key = None

            if isinstance(key, RecentPostsCategory):
                self._show_special(key, self.recent_posts_provider)
            elif isinstance(key, MyPostsCategory):
                self._show_special(key, self.my_posts_provider)
            else:
                self._show_category(key, category_id)

            self.view.set_user_may_start_a_new_thread(self.user_may_start_a_new_thread())
        except DataSourceError as e:
            self._report(e, "open category")
            self.view.panic()

    def _show_special(self, category: SpecialCategory, provider: ThreadProvider) -> None:
        self.current_category = category
        self.view.display_sub_categories([], True)
        self.view.display_threads(provider)

    def _show_category(self, category_id: Optional[int], requested: str) -> None:
        self.current_category = None
        if category_id is not None:
            try:
                self.current_category = self.data_source.get_category(category_id)
            except NoSuchCategoryError as e:
                self._report(e, "open category", category_id=e.category_id)

        if self.current_category is None:
            self.view.display_category_not_found_error(requested)
            self.view.hide_threads()
            return

        self.view.display_sub_categories(
            self.data_source.get_sub_categories(self.current_category), False
        )
        if self.count_threads() > 0:
            self.view.display_threads(self.default_threads_provider)
        else:
            self.view.hide_threads()

    def get_current_category(self) -> Optional[CategorySelection]:
        """The shown category; None if the visited id did not resolve."""
        return self.current_category

    def get_category_name(self) -> str:
        if self.current_category is None:
            return "?"
        return self.current_category.name

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_root_categories(self) -> List[Category]:
        try:
            return self.data_source.get_root_categories()
        except DataSourceError as e:
            self._report(e, "list root categories")
            raise

    def get_sub_categories(self, category: Category) -> List[Category]:
        try:
            return self.data_source.get_sub_categories(category)
        except DataSourceError as e:
            self._report(e, "list subcategories", category_id=category.id)
            raise

    def count_threads(self) -> int:
        """
        Number of threads in the current category.

        Returns:
            The count, or -1 if no category is selected
        """
        if self.current_category is None:
            return -1
        if isinstance(self.current_category, RecentPostsCategory):
            provider = self.recent_posts_provider
        elif isinstance(self.current_category, MyPostsCategory):
            provider = self.my_posts_provider
        else:
            provider = self.default_threads_provider

        try:
            return provider.get_thread_amount()
        except DataSourceError as e:
            self._report(e, "count threads")
            raise

    def get_threads_between(self, start: int, end: int) -> List[DiscussionThread]:
        try:
            return self.default_threads_provider.get_threads_between(start, end)
        except DataSourceError as e:
            self._report(e, "list threads")
            raise

    def get_thread(self, thread_id: int) -> DiscussionThread:
        return self.data_source.get_thread(thread_id)

    def user_has_read(self, thread: DiscussionThread) -> bool:
        """Read state for display; failures count as read."""
        try:
            return self.data_source.is_thread_read(thread)
        except DataSourceError as e:
            logger.warning(f"Could not check read state of thread {thread.id}: {e}")
            return True

    def user_is_following(self, thread: DiscussionThread) -> bool:
        """Follow state for display; failures count as not following."""
        try:
            return self.data_source.is_following(thread)
        except DataSourceError as e:
            logger.warning(f"Could not check follow state of thread {thread.id}: {e}")
            return False

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def user_can_follow(self, thread: DiscussionThread) -> bool:
        """True iff the user may follow threads and doesn't follow this one yet."""
        try:
            return self.authorization.may_follow(thread) and not self.data_source.is_following(thread)
        except DataSourceError as e:
            self._report(e, "check follow state", thread_id=thread.id)
            raise

    def user_can_unfollow(self, thread: DiscussionThread) -> bool:
        """True iff the user may follow threads and follows this one."""
        try:
            return self.authorization.may_follow(thread) and self.data_source.is_following(thread)
        except DataSourceError as e:
            self._report(e, "check follow state", thread_id=thread.id)
            raise

    def user_can_sticky(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_sticky(thread) and not thread.is_sticky()

    def user_can_unsticky(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_sticky(thread) and thread.is_sticky()

    def user_can_lock(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_lock(thread) and not thread.is_locked()

    def user_can_unlock(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_lock(thread) and thread.is_locked()

    def user_may_delete(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_delete(thread)

    def user_may_move(self, thread: DiscussionThread) -> bool:
        return self.authorization.may_move(thread)

    def user_may_start_a_new_thread(self) -> bool:
        # Pseudo-categories have nowhere to put a new thread
        if not isinstance(self.current_category, Category):
            return False
        return self.authorization.may_create_thread_in(self.current_category)

    def user_can_create_subcategory(self) -> bool:
        return self.authorization.may_edit_categories()

    def may_show_tools_for(self, thread: DiscussionThread) -> bool:
        """Whether any thread tool applies; data failures hide the tools."""
        try:
            return (
                self.user_can_follow(thread)
                or self.user_can_unfollow(thread)
                or self.user_can_sticky(thread)
                or self.user_can_unsticky(thread)
                or self.user_can_lock(thread)
                or self.user_can_unlock(thread)
            )
        except DataSourceError:
            return False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _require(self, allowed: bool, operation: str, thread: DiscussionThread) -> None:
        if not allowed:
            error = AuthorizationError(f"Not allowed to {operation} thread {thread.id}")
            self._report(error, operation, thread_id=thread.id)
            raise error

    def _refresh_threads(self) -> None:
        self.view.display_threads(self.default_threads_provider)

    def follow(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_follow(thread), "follow", thread)
        try:
            self.data_source.follow(thread)
        except DataSourceError as e:
            self._report(e, "follow", thread_id=thread.id)
            raise
        self.view.confirm_following(thread)

    def unfollow(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_follow(thread), "unfollow", thread)
        try:
            self.data_source.unfollow(thread)
        except DataSourceError as e:
            self._report(e, "unfollow", thread_id=thread.id)
            raise
        self.view.confirm_unfollowing(thread)

    def move(self, thread: DiscussionThread, destination: Category) -> None:
        self._require(self.authorization.may_move(thread), "move", thread)
        try:
            moved = self.data_source.move(thread, destination)
        except DataSourceError as e:
            self._report(e, "move", thread_id=thread.id, category_id=destination.id)
            raise
        self.view.confirm_thread_moved(moved)
        self._refresh_threads()

    def sticky(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_sticky(thread), "sticky", thread)
        try:
            updated = self.data_source.sticky(thread)
        except DataSourceError as e:
            self._report(e, "sticky", thread_id=thread.id)
            raise
        self.view.confirm_thread_stickied(updated)
        self._refresh_threads()

    def unsticky(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_sticky(thread), "unsticky", thread)
        try:
            updated = self.data_source.unsticky(thread)
        except DataSourceError as e:
            self._report(e, "unsticky", thread_id=thread.id)
            raise
        self.view.confirm_thread_unstickied(updated)
        self._refresh_threads()

    def lock(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_lock(thread), "lock", thread)
        try:
            updated = self.data_source.lock(thread)
        except DataSourceError as e:
            self._report(e, "lock", thread_id=thread.id)
            raise
        self.view.confirm_thread_locked(updated)

    def unlock(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_lock(thread), "unlock", thread)
        try:
            updated = self.data_source.unlock(thread)
        except DataSourceError as e:
            self._report(e, "unlock", thread_id=thread.id)
            raise
        self.view.confirm_thread_unlocked(updated)

    def delete(self, thread: DiscussionThread) -> None:
        self._require(self.authorization.may_delete(thread), "delete", thread)
        try:
            self.data_source.delete_thread(thread)
        except DataSourceError as e:
            self._report(e, "delete", thread_id=thread.id)
            raise
        self.view.confirm_thread_deleted(thread)
        self._refresh_threads()
