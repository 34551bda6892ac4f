"""
View ports consumed by the presenters.

A view renders whatever the presenter hands it and forwards user input back
as presenter calls. Presenters never render anything themselves.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Set
from dataclasses import dataclass

from models.entities import Category, DiscussionThread, Post, PostVote, User


class CategoryView(ABC):
    """Category browsing: subcategories, thread listing and thread tools."""

    @abstractmethod
    def display_sub_categories(self, categories: List[Category], is_special: bool) -> None:
        """Show the subcategories of the current category."""

    @abstractmethod
    def display_threads(self, provider) -> None:
        """Show threads, paging through the given ThreadProvider."""

    @abstractmethod
    def hide_threads(self) -> None:
        """The category has no threads; show no thread table at all."""

    @abstractmethod
    def display_category_not_found_error(self, category_id: str) -> None:
        ...

    @abstractmethod
    def set_user_may_start_a_new_thread(self, may_start: bool) -> None:
        ...

    @abstractmethod
    def panic(self) -> None:
        """Something unrecoverable happened while serving this request."""

    @abstractmethod
    def confirm_following(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_unfollowing(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_moved(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_stickied(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_unstickied(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_locked(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_unlocked(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_thread_deleted(self, thread: DiscussionThread) -> None:
        ...


@dataclass
class ThreadViewData:
    """What the thread view needs to frame the post listing."""
    thread_id: int
    thread_topic: str
    category_name: str
    may_reply: bool
    is_locked: bool
    is_following: bool


@dataclass
class PostData:
    """A post together with the current user's view of it."""
    post: Post
    score: int = 0
    vote: PostVote = PostVote.NONE
    may_vote: bool = False
    may_delete: bool = False
    may_edit: bool = False
    may_report: bool = False
    may_quote: bool = False
    may_ban_author: bool = False


class ThreadView(ABC):
    """Single thread: posts, reply box and post tools."""

    @abstractmethod
    def set_view_data(self, view_data: ThreadViewData) -> None:
        ...

    @abstractmethod
    def set_posts(self, posts: List[PostData]) -> None:
        """Replace the listing with the first page of posts."""

    @abstractmethod
    def append_posts(self, posts: List[PostData]) -> None:
        """Append posts below the current listing."""

    @abstractmethod
    def display_thread_not_found(self, thread_id) -> None:
        ...

    @abstractmethod
    def redirect_to_dashboard(self) -> None:
        """Leave the thread view; the thread no longer exists."""

    @abstractmethod
    def panic(self) -> None:
        ...

    @abstractmethod
    def append_quote(self, text: str) -> None:
        """Insert quoted text into the reply box."""

    @abstractmethod
    def update_score(self, post: Post, score: int, vote: PostVote) -> None:
        ...

    @abstractmethod
    def other_user_typing(self, user: Optional[User]) -> None:
        ...

    @abstractmethod
    def other_user_authored(self, post: PostData) -> None:
        ...

    @abstractmethod
    def confirm_post_deleted(self, post: Post) -> None:
        ...

    @abstractmethod
    def confirm_post_reported(self, post: Post) -> None:
        ...

    @abstractmethod
    def confirm_user_banned(self, user: User) -> None:
        ...

    @abstractmethod
    def confirm_following(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def confirm_unfollowing(self, thread: DiscussionThread) -> None:
        ...

    @abstractmethod
    def show_error(self, message: str) -> None:
        ...


class CategoryListingView(ABC):
    """Administrative category tree for one parent scope."""

    @abstractmethod
    def set_admin_controls_visible(self, visible: bool) -> None:
        ...

    @abstractmethod
    def display_categories(self, categories: List[Category]) -> None:
        ...

    @abstractmethod
    def get_modified_categories(self) -> Set[Category]:
        """Categories the user has rearranged since the last display."""

    @abstractmethod
    def hide_create_category_form(self) -> None:
        ...
