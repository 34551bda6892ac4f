"""
Thread providers

A thread provider hands a view threads page by page using the half-open
``[start, end)`` pagination of the data source. Views pull pages lazily and
may restart iteration at any time.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from core.data_source import DataSource
from models.entities import Category, DiscussionThread, CategorySelection


class ThreadProvider(ABC):
    """Lazily paged source of threads."""

    @abstractmethod
    def get_threads_between(self, start: int, end: int) -> List[DiscussionThread]:
        ...

    @abstractmethod
    def get_thread_amount(self) -> int:
        ...

    def iter_pages(self, page_size: int) -> Iterator[List[DiscussionThread]]:
        """
        Yield successive non-empty pages of threads.

        The total is read once when iteration starts; pages are fetched only
        when requested. Every call starts again from the first page.

        Args:
            page_size: Number of threads per page

        Raises:
            ValueError: If page_size is not positive
        """
        if page_size <= 0:
            raise ValueError("Page size must be positive")
        return self._pages(page_size)

    def _pages(self, page_size: int) -> Iterator[List[DiscussionThread]]:
        amount = self.get_thread_amount()
        for start in range(0, amount, page_size):
            page = self.get_threads_between(start, min(start + page_size, amount))
            if not page:
                # Threads vanished after the count was taken
                return
            yield page


class CategoryThreadProvider(ThreadProvider):
    """
    Threads of whatever category a presenter currently shows.

    The category is looked up on every call so the provider follows the
    presenter's state; it yields nothing while no real category is selected.
    """

    def __init__(self, data_source: DataSource, current_category: Callable[[], Optional[CategorySelection]]):
        self.data_source = data_source
        self._current_category = current_category

    def _category(self) -> Optional[Category]:
        category = self._current_category()
        return category if isinstance(category, Category) else None

    def get_threads_between(self, start: int, end: int) -> List[DiscussionThread]:
        category = self._category()
        if category is None:
            return []
        return self.data_source.get_threads(category, start, end)

    def get_thread_amount(self) -> int:
        category = self._category()
        if category is None:
            return 0
        return self.data_source.get_thread_count(category)


class RecentPostsThreadProvider(ThreadProvider):
    """Threads across all categories by latest activity."""

    def __init__(self, data_source: DataSource):
        self.data_source = data_source

    def get_threads_between(self, start: int, end: int) -> List[DiscussionThread]:
        return self.data_source.get_recent_posts(start, end)

    def get_thread_amount(self) -> int:
        return self.data_source.get_recent_posts_amount()


class MyPostsThreadProvider(ThreadProvider):
    """Threads the current user has posted in."""

    def __init__(self, data_source: DataSource):
        self.data_source = data_source

    def get_threads_between(self, start: int, end: int) -> List[DiscussionThread]:
        return self.data_source.get_my_post_threads(start, end)

    def get_thread_amount(self) -> int:
        return self.data_source.get_my_post_threads_count()
