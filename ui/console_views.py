"""
Console views for the Agora forum.

Plain-text implementations of the view ports, used by the command line
entry point. Each view writes to a text stream (stdout by default).
"""

import logging
import sys
from typing import Dict, List, Optional, Set, TextIO

from logic.input_cache import InputCache
from logic.thread_presenter import ThreadPresenter
from logic.thread_provider import ThreadProvider
from logic.views import (
    CategoryListingView,
    CategoryView,
    PostData,
    ThreadView,
    ThreadViewData,
)
from models.entities import Category, DiscussionThread, Post, PostVote, User


logger = logging.getLogger(__name__)


def _user_name(user: Optional[User]) -> str:
    return user.display_name if user else "Anonymous"


class _ConsoleOutput:
    """Shared line writer."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def write(self, line: str = "") -> None:
        print(line, file=self.stream)


class ConsoleCategoryView(_ConsoleOutput, CategoryView):
    """Prints a category page: subcategories followed by its threads."""

    def __init__(self, stream: Optional[TextIO] = None, page_size: int = 20):
        super().__init__(stream)
        self.page_size = page_size

    def display_sub_categories(self, categories: List[Category], is_special: bool) -> None:
        if is_special or not categories:
            return
        self.write("Subcategories:")
        for category in categories:
            self.write(f"  [{category.id}] {category.name}")

    def display_threads(self, provider: ThreadProvider) -> None:
        self.write("Threads:")
        for page in provider.iter_pages(self.page_size):
            for thread in page:
                self.write(f"  {self._format_thread(thread)}")

    def _format_thread(self, thread: DiscussionThread) -> str:
        flags = ""
        if thread.is_sticky():
            flags += "[sticky] "
        if thread.is_locked():
            flags += "[locked] "
        return (
            f"#{thread.id} {flags}{thread.topic} "
            f"({thread.post_count} posts, by {_user_name(thread.original_poster)})"
        )

    def hide_threads(self) -> None:
        self.write("No threads.")

    def display_category_not_found_error(self, category_id: str) -> None:
        self.write(f"Category not found: {category_id}")

    def set_user_may_start_a_new_thread(self, may_start: bool) -> None:
        if may_start:
            self.write("You may start a new thread here.")

    def panic(self) -> None:
        self.write("Something went wrong. Please try again later.")

    def confirm_following(self, thread: DiscussionThread) -> None:
        self.write(f"Following thread #{thread.id}")

    def confirm_unfollowing(self, thread: DiscussionThread) -> None:
        self.write(f"No longer following thread #{thread.id}")

    def confirm_thread_moved(self, thread: DiscussionThread) -> None:
        self.write(f"Moved thread #{thread.id} to {thread.category.name if thread.category else '?'}")

    def confirm_thread_stickied(self, thread: DiscussionThread) -> None:
        self.write(f"Stickied thread #{thread.id}")

    def confirm_thread_unstickied(self, thread: DiscussionThread) -> None:
        self.write(f"Unstickied thread #{thread.id}")

    def confirm_thread_locked(self, thread: DiscussionThread) -> None:
        self.write(f"Locked thread #{thread.id}")

    def confirm_thread_unlocked(self, thread: DiscussionThread) -> None:
        self.write(f"Unlocked thread #{thread.id}")

    def confirm_thread_deleted(self, thread: DiscussionThread) -> None:
        self.write(f"Deleted thread #{thread.id}")


class ConsoleThreadView(_ConsoleOutput, ThreadView):
    """Prints a thread and its posts."""

    def __init__(self, stream: Optional[TextIO] = None, input_cache: Optional[InputCache] = None):
        """
        Initialize the view.

        Args:
            stream: Output stream (default: stdout)
            input_cache: Session-wide reply drafts, shared between thread views
        """
        super().__init__(stream)
        self.input_cache = input_cache if input_cache is not None else InputCache()
        self.presenter: Optional[ThreadPresenter] = None
        self.view_data: Optional[ThreadViewData] = None
        self.reply_draft = ""

    def set_view_data(self, view_data: ThreadViewData) -> None:
        self.view_data = view_data
        self.reply_draft = self.input_cache.get(view_data.thread_topic) or ""
        header = f"{view_data.thread_topic} (in {view_data.category_name})"
        if view_data.is_locked:
            header += " [locked]"
        self.write(header)
        self.write("=" * len(header))
        if self.reply_draft:
            self.write(f"(unsent reply: {self.reply_draft})")

    def input_value_changed(self, text: str) -> None:
        """The reply box changed; keep the draft and tell the presenter."""
        self.reply_draft = text
        if self.view_data is not None:
            self.input_cache.put(self.view_data.thread_topic, text)
        if self.presenter is not None:
            self.presenter.input_value_changed()

    def submit_reply(self, attachments: Optional[Dict[str, bytes]] = None) -> Optional[Post]:
        """
        Send the current draft through the presenter.

        The cached draft is dropped before sending. A blank draft sends
        nothing.

        Returns:
            The saved post, or None if nothing was sent
        """
        if self.view_data is not None:
            self.input_cache.remove(self.view_data.thread_topic)
        body = self.reply_draft
        self.reply_draft = ""
        if not body.strip() or self.presenter is None:
            return None
        return self.presenter.send_reply(body, attachments)

    def set_posts(self, posts: List[PostData]) -> None:
        for data in posts:
            self._write_post(data)

    def append_posts(self, posts: List[PostData]) -> None:
        for data in posts:
            self._write_post(data)

    def _write_post(self, data: PostData) -> None:
        post = data.post
        marker = {PostVote.UPVOTE: "+", PostVote.DOWNVOTE: "-"}.get(data.vote, " ")
        self.write(f"[{data.score:+d}{marker}] {_user_name(post.author)} wrote:")
        for line in post.body_raw.splitlines():
            self.write(f"    {line}")
        for attachment in post.attachments:
            self.write(f"    attachment: {attachment.filename} {attachment.download_url or ''}")
        self.write()

    def display_thread_not_found(self, thread_id) -> None:
        self.write(f"Thread not found: {thread_id}")

    def panic(self) -> None:
        self.write("Something went wrong. Please try again later.")

    def redirect_to_dashboard(self) -> None:
        self.view_data = None
        self.write("The thread has been deleted.")

    def append_quote(self, text: str) -> None:
        self.input_value_changed(self.reply_draft + text)

    def update_score(self, post: Post, score: int, vote: PostVote) -> None:
        self.write(f"Post {post.id} score: {score}")

    def other_user_typing(self, user: Optional[User]) -> None:
        self.write(f"{_user_name(user)} is typing...")

    def other_user_authored(self, post: PostData) -> None:
        self._write_post(post)

    def confirm_post_deleted(self, post: Post) -> None:
        self.write(f"Deleted post {post.id}")

    def confirm_post_reported(self, post: Post) -> None:
        self.write(f"Reported post {post.id}")

    def confirm_user_banned(self, user: User) -> None:
        self.write(f"Banned {user.display_name}")

    def confirm_following(self, thread: DiscussionThread) -> None:
        self.write(f"Following thread #{thread.id}")

    def confirm_unfollowing(self, thread: DiscussionThread) -> None:
        self.write(f"No longer following thread #{thread.id}")

    def show_error(self, message: str) -> None:
        self.write(f"Error: {message}")


class ConsoleCategoryListingView(_ConsoleOutput, CategoryListingView):
    """Prints the category tree level with thread counts."""

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__(stream)
        self.admin_controls_visible = False
        self.modified: Set[Category] = set()
        self.counts = None

    def set_admin_controls_visible(self, visible: bool) -> None:
        self.admin_controls_visible = visible

    def display_categories(self, categories: List[Category]) -> None:
        self.modified = set()
        if not categories:
            self.write("No categories.")
            return
        for category in categories:
            line = f"[{category.id}] {category.name}"
            if self.counts is not None:
                total, unread = self.counts(category)
                line += f" ({total} threads, {unread} unread)"
            if category.description:
                line += f" - {category.description}"
            self.write(line)

    def get_modified_categories(self) -> Set[Category]:
        return set(self.modified)

    def hide_create_category_form(self) -> None:
        logger.debug("Create category form closed")
