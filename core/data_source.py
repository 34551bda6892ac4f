"""
Forum Data Port

The contract every storage backend implements. All domain queries and
mutations pass through it; presenters depend on nothing else for persistent
state.

Contract rules shared by all implementations:
- Listings return lists, never None; an empty result is an empty list.
- Pages are half-open ranges ``[start, end)``; a page beyond the total count
  is empty rather than an error.
- Lookups of a missing id raise a specific NotFoundError subclass.
- Any backend failure raises DataSourceError wrapping the cause. Each call
  either fully succeeds or leaves no visible change.
- Per-user state (votes, follows, read flags) is scoped to the current user.
  The anonymous user sees every thread as read and follows nothing.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Dict

from models.entities import (
    Category, DiscussionThread, Post, PostVote, PostReport, User,
)


class DataSource(ABC):
    """Abstract forum storage backend."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    def get_current_user(self) -> User:
        """Return the user this data source acts for (anonymous if none)."""

    @abstractmethod
    def ban(self, user: User) -> None:
        """Ban a user from posting."""

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @abstractmethod
    def get_root_categories(self) -> List[Category]:
        """
        Retrieve the top level categories.

        Returns:
            Categories ordered by display order
        """

    @abstractmethod
    def get_sub_categories(self, category: Category) -> List[Category]:
        """
        Retrieve the direct children of a category.

        Args:
            category: Parent category

        Returns:
            Categories ordered by display order
        """

    @abstractmethod
    def get_category(self, category_id: int) -> Category:
        """
        Retrieve a category by its ID.

        Raises:
            NoSuchCategoryError: If the category does not exist
        """

    @abstractmethod
    def save_category(self, category: Category) -> Category:
        """
        Create or update a category.

        Returns:
            The persisted category with its ID populated
        """

    @abstractmethod
    def save_categories(self, categories: Iterable[Category]) -> None:
        """Persist a batch of modified categories, typically a reorder."""

    @abstractmethod
    def delete_category(self, category: Category) -> None:
        """Delete a category. What happens to its contents is backend policy."""

    # ------------------------------------------------------------------
    # Thread listings
    # ------------------------------------------------------------------

    @abstractmethod
    def get_threads(self, category: Category, start: int, end: int) -> List[DiscussionThread]:
        """
        Retrieve one page of threads in a category.

        Args:
            category: Category to list
            start: First index, inclusive
            end: Last index, exclusive

        Returns:
            At most ``end - start`` threads, sticky threads first
        """

    @abstractmethod
    def get_thread_count(self, category: Category) -> int:
        """Total number of threads backing ``get_threads``."""

    @abstractmethod
    def get_recent_posts(self, start: int, end: int) -> List[DiscussionThread]:
        """One page of threads across all categories by latest activity."""

    @abstractmethod
    def get_recent_posts_amount(self) -> int:
        """Total number of threads backing ``get_recent_posts``."""

    @abstractmethod
    def get_my_post_threads(self, start: int, end: int) -> List[DiscussionThread]:
        """One page of threads the current user has posted in."""

    @abstractmethod
    def get_my_post_threads_count(self) -> int:
        """Total number of threads backing ``get_my_post_threads``."""

    @abstractmethod
    def get_unread_thread_count(self, category: Category) -> int:
        """Number of threads in a category the current user has not read."""

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    @abstractmethod
    def get_thread(self, thread_id: int) -> DiscussionThread:
        """
        Retrieve a thread with its category populated.

        Raises:
            NoSuchThreadError: If the thread does not exist
        """

    @abstractmethod
    def save_new_thread(
        self,
        new_thread: DiscussionThread,
        first_post: Post,
        files: Optional[Dict[str, bytes]] = None
    ) -> DiscussionThread:
        """
        Create a thread together with its first post.

        Both are persisted in one unit; if either fails neither exists.

        Args:
            new_thread: Thread to create; its category must exist
            first_post: Root post of the thread
            files: Optional attachment contents for the first post

        Returns:
            The persisted thread
        """

    @abstractmethod
    def delete_thread(self, thread: DiscussionThread) -> None:
        """Delete a thread and all of its posts."""

    @abstractmethod
    def move(self, thread: DiscussionThread, destination: Category) -> DiscussionThread:
        """Move a thread to another category and return the moved thread."""

    @abstractmethod
    def sticky(self, thread: DiscussionThread) -> DiscussionThread:
        """Pin a thread to the top of its category and return the updated thread."""

    @abstractmethod
    def unsticky(self, thread: DiscussionThread) -> DiscussionThread:
        """Unpin a thread and return the updated thread."""

    @abstractmethod
    def lock(self, thread: DiscussionThread) -> DiscussionThread:
        """Close a thread for replies and return the updated thread."""

    @abstractmethod
    def unlock(self, thread: DiscussionThread) -> DiscussionThread:
        """Reopen a thread for replies and return the updated thread."""

    # ------------------------------------------------------------------
    # Following and read tracking
    # ------------------------------------------------------------------

    @abstractmethod
    def follow(self, thread: DiscussionThread) -> None:
        """Subscribe the current user to a thread."""

    @abstractmethod
    def unfollow(self, thread: DiscussionThread) -> None:
        """Unsubscribe the current user from a thread."""

    @abstractmethod
    def is_following(self, thread: DiscussionThread) -> bool:
        """Whether the current user follows a thread."""

    @abstractmethod
    def is_thread_read(self, thread: DiscussionThread) -> bool:
        """Whether the current user has read a thread since its last reply."""

    @abstractmethod
    def mark_thread_read(self, thread: DiscussionThread) -> None:
        """Flag a thread as read by the current user."""

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    @abstractmethod
    def get_posts(self, thread: DiscussionThread) -> List[Post]:
        """
        Retrieve all posts of a thread.

        Returns:
            Posts in creation order with authors and attachments resolved
        """

    @abstractmethod
    def save_post(self, post: Post, files: Optional[Dict[str, bytes]] = None) -> Post:
        """
        Add a reply to ``post.thread_id`` as the current user.

        Args:
            post: Reply to persist
            files: Optional attachment contents keyed by filename

        Returns:
            The persisted post
        """

    @abstractmethod
    def delete_post(self, post: Post) -> None:
        """Delete a single post."""

    @abstractmethod
    def report_post(self, report: PostReport) -> None:
        """File a report about a post for the moderators."""

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    @abstractmethod
    def get_post_vote(self, post: Post) -> PostVote:
        """The current user's vote on a post."""

    @abstractmethod
    def upvote(self, post: Post) -> None:
        """Set the current user's vote to up. Idempotent."""

    @abstractmethod
    def downvote(self, post: Post) -> None:
        """Set the current user's vote to down. Idempotent."""

    @abstractmethod
    def remove_user_vote(self, post: Post) -> None:
        """Clear the current user's vote. Idempotent."""

    @abstractmethod
    def get_score(self, post: Post) -> int:
        """Aggregate score of a post over all users' votes."""
