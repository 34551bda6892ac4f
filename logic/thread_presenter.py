"""
Thread Presenter for the Agora forum layer

Drives the single thread view: loading a thread and its posts page by page,
read marking, replies and new threads, voting, post moderation, and the
live presence of other viewers.
"""

import logging
import threading
from typing import Dict, List, Optional

from core.authorization import AuthorizationService
from core.data_source import DataSource
from core.error_handler import (
    AuthorizationError,
    DataSourceError,
    ErrorHandler,
    NoSuchThreadError,
)
from core.presence import PresenceEvent, PresenceHub, PresenceKind, Subscription
from logic.presenter import Presenter
from logic.views import PostData, ThreadView, ThreadViewData
from models.entities import (
    Category,
    DiscussionThread,
    Post,
    PostReport,
    PostVote,
    ReportReason,
    User,
)


logger = logging.getLogger(__name__)


class ThreadPresenter(Presenter[ThreadView]):
    """
    Presenter behind the thread view.

    Owns the current thread and a cache of its posts. The view receives the
    posts in pages of ``post_page_size``.

    Presence events arrive on the publisher's thread. The post cache, the
    page cursor and the view calls that depend on them are serialized by a
    reentrant lock, so an event waits until the viewer's own action is done.
    """

    def __init__(
        self,
        view: ThreadView,
        data_source: DataSource,
        authorization: AuthorizationService,
        presence: Optional[PresenceHub] = None,
        post_page_size: int = 20,
        error_handler: Optional[ErrorHandler] = None
    ):
        """
        Initialize the presenter.

        Args:
            view: Thread view port
            data_source: Forum storage backend
            authorization: Capability service for the current user
            presence: Optional hub relaying other viewers' activity
            post_page_size: Number of posts per page (must be positive)
            error_handler: Error handler used to log failures (default: global)
        """
        super().__init__(view, data_source, authorization, error_handler)
        if post_page_size <= 0:
            raise ValueError("Post page size must be positive")

        self.presence = presence
        self.post_page_size = post_page_size
        self.current_thread: Optional[DiscussionThread] = None
        self._posts: List[Post] = []
        self._shown = 0
        self._marked_read = False
        self._subscription: Optional[Subscription] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def set_current_thread_by_id(self, thread_id: int) -> None:
        """
        Activate the thread view for a thread.

        Shows the first page of posts and marks the thread read. A missing
        thread is reported to the view; other failures make the view panic.
        """
        with self._lock:
            self.deactivate()
            try:
                thread = self.data_source.get_thread(thread_id)
            except NoSuchThreadError as e:
                self._report(e, "open thread", thread_id=thread_id)
                self.view.display_thread_not_found(thread_id)
                return
            except DataSourceError as e:
                self._report(e, "open thread", thread_id=thread_id)
                self.view.panic()
                return

            try:
                self._activate(thread)
            except DataSourceError as e:
                self._report(e, "open thread", thread_id=thread_id)
                self.deactivate()
                self.view.panic()

    def _activate(self, thread: DiscussionThread) -> None:
        self.current_thread = thread
        self._posts = self.data_source.get_posts(thread)
        self._shown = 0

        self.view.set_view_data(self._view_data())
        self.view.set_posts(self._next_page())
        self._mark_read_once()

        if self.presence is not None:
            self._subscription = self.presence.subscribe(thread.id, self._on_presence)

    def deactivate(self) -> None:
        """Leave the current thread; the next activation marks it read again."""
        with self._lock:
            if self._subscription is not None and self.presence is not None:
                self.presence.unsubscribe(self._subscription)
            self._subscription = None
            self._marked_read = False
            self.current_thread = None
            self._posts = []
            self._shown = 0

    def _view_data(self) -> ThreadViewData:
        thread = self.current_thread
        return ThreadViewData(
            thread_id=thread.id,
            thread_topic=thread.topic,
            category_name=thread.category.name if thread.category else "",
            may_reply=self.user_may_reply(),
            is_locked=thread.is_locked(),
            is_following=self.user_is_following(thread)
        )

    def _mark_read_once(self) -> None:
        if self._marked_read:
            return
        try:
            self.data_source.mark_thread_read(self.current_thread)
        except DataSourceError as e:
            logger.warning(f"Could not mark thread {self.current_thread.id} read: {e}")
        self._marked_read = True

    def _require_thread(self) -> DiscussionThread:
        if self.current_thread is None:
            raise RuntimeError("No thread is active")
        return self.current_thread

    # ------------------------------------------------------------------
    # Post listing
    # ------------------------------------------------------------------

    def get_posts(self) -> List[Post]:
        """All posts of the current thread known to this presenter."""
        with self._lock:
            return list(self._posts)

    def _next_page(self) -> List[PostData]:
        page = self._posts[self._shown:self._shown + self.post_page_size]
        data = [self._post_data(post) for post in page]
        self._shown += len(page)
        return data

    def has_more_posts(self) -> bool:
        with self._lock:
            return self._shown < len(self._posts)

    def append_next_page(self) -> bool:
        """
        Append the next page of posts to the view.

        A failure while loading the page leaves the cursor where it was, so
        the same page is offered again.

        Returns:
            Whether further pages remain
        """
        with self._lock:
            self._require_thread()
            if self.has_more_posts():
                try:
                    page = self._next_page()
                except DataSourceError as e:
                    self._report(e, "load posts", thread_id=self.current_thread.id)
                    raise
                self.view.append_posts(page)
            return self.has_more_posts()

    def _post_data(self, post: Post) -> PostData:
        author = post.author
        return PostData(
            post=post,
            score=self.data_source.get_score(post),
            vote=self.data_source.get_post_vote(post),
            may_vote=self.authorization.may_vote(post),
            may_delete=self.authorization.may_delete(post),
            may_edit=self.authorization.may_edit(post),
            may_report=self.authorization.may_report(post),
            may_quote=self.user_may_reply(),
            may_ban_author=author is not None and self.authorization.may_ban(author)
        )

    # ------------------------------------------------------------------
    # Replies and new threads
    # ------------------------------------------------------------------

    def user_may_reply(self) -> bool:
        thread = self.current_thread
        if thread is None:
            return False
        return self.authorization.may_reply_in(thread) and not thread.is_locked()

    def send_reply(self, raw_body: str, attachments: Optional[Dict[str, bytes]] = None) -> Post:
        """
        Reply to the current thread.

        The reply is appended to the view and announced to other viewers.

        Args:
            raw_body: Unrendered post markup
            attachments: Optional file contents keyed by filename

        Returns:
            The saved post

        Raises:
            AuthorizationError: If the user may not reply here
            ValueError: If the body is blank
        """
        thread = self._require_thread()
        if not self.user_may_reply():
            error = AuthorizationError(f"Not allowed to reply in thread {thread.id}")
            self._report(error, "reply", thread_id=thread.id)
            raise error
        if not raw_body or not raw_body.strip():
            raise ValueError("Reply must not be empty")

        reply = Post(id=None, thread_id=thread.id, author=None, body_raw=raw_body)
        try:
            saved = self.data_source.save_post(reply, attachments)
        except DataSourceError as e:
            self._report(e, "reply", thread_id=thread.id)
            raise

        with self._lock:
            all_shown = not self.has_more_posts()
            self._posts.append(saved)
            # Pages not yet shown stay pending; the reply goes at the end once they are
            if all_shown:
                data = self._post_data(saved)
                self._shown = len(self._posts)
                self.view.append_posts([data])

        if self.presence is not None:
            self.presence.publish_authored(thread.id, saved, origin=self._subscription)
        logger.info(f"Reply {saved.id} sent to thread {thread.id}")
        return saved

    def create_thread(
        self,
        category: Category,
        topic: str,
        raw_body: str,
        attachments: Optional[Dict[str, bytes]] = None
    ) -> DiscussionThread:
        """
        Start a new thread in a caller-chosen category and show it.

        Raises:
            AuthorizationError: If the user may not start threads there
            ValueError: If the topic or body is blank
        """
        if not self.authorization.may_create_thread_in(category):
            error = AuthorizationError(f"Not allowed to start a thread in category {category.id}")
            self._report(error, "create thread", category_id=category.id)
            raise error
        if not raw_body or not raw_body.strip():
            raise ValueError("The first post must not be empty")

        new_thread = DiscussionThread(id=None, topic=topic, category=category)
        first_post = Post(id=None, thread_id=None, author=None, body_raw=raw_body)
        try:
            saved = self.data_source.save_new_thread(new_thread, first_post, attachments)
        except DataSourceError as e:
            self._report(e, "create thread", category_id=category.id)
            raise

        self.set_current_thread_by_id(saved.id)
        return saved

    def input_value_changed(self) -> None:
        """The user typed into the reply box; tell the other viewers."""
        if self.presence is None or self.current_thread is None:
            return
        self.presence.publish_typing(
            self.current_thread.id,
            self.data_source.get_current_user(),
            origin=self._subscription
        )

    def quote_post(self, post: Post) -> None:
        author = post.author.display_name if post.author else "Anonymous"
        self.view.append_quote(f"[quote={author}]{post.body_raw}[/quote]")

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    def _on_presence(self, event: PresenceEvent) -> None:
        with self._lock:
            if self.current_thread is None or event.thread_id != self.current_thread.id:
                return
            if event.kind == PresenceKind.TYPING:
                self.other_user_typing(event.user)
            elif event.kind == PresenceKind.AUTHORED:
                self.other_user_authored(event.post)

    def other_user_typing(self, user: Optional[User]) -> None:
        self.view.other_user_typing(user)

    def other_user_authored(self, post: Post) -> None:
        """
        Add a post written elsewhere to the listing without re-fetching.

        The post is shown right away only when every earlier page is on
        screen; otherwise it arrives with the next appended page.
        """
        with self._lock:
            if any(known.id == post.id for known in self._posts):
                return
            all_shown = not self.has_more_posts()
            self._posts.append(post)
            if not all_shown:
                logger.debug(f"Post {post.id} queued behind unshown pages")
                return

            # A fresh post has no votes
            data = PostData(
                post=post,
                may_vote=self.authorization.may_vote(post),
                may_delete=self.authorization.may_delete(post),
                may_edit=self.authorization.may_edit(post),
                may_report=self.authorization.may_report(post),
                may_quote=self.user_may_reply()
            )
            self._shown = len(self._posts)
            self.view.other_user_authored(data)

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def user_may_vote(self, post: Post) -> bool:
        return self.authorization.may_vote(post)

    def get_post_vote(self, post: Post) -> PostVote:
        return self.data_source.get_post_vote(post)

    def get_score(self, post: Post) -> int:
        return self.data_source.get_score(post)

    def _apply_vote(self, post: Post, operation: str, vote_call) -> None:
        if not self.user_may_vote(post):
            error = AuthorizationError(f"Not allowed to vote on post {post.id}")
            self._report(error, operation)
            raise error
        try:
            vote_call(post)
            score = self.data_source.get_score(post)
            vote = self.data_source.get_post_vote(post)
        except DataSourceError as e:
            self._report(e, operation, thread_id=post.thread_id)
            raise
        self.view.update_score(post, score, vote)

    def upvote(self, post: Post) -> None:
        self._apply_vote(post, "upvote", self.data_source.upvote)

    def downvote(self, post: Post) -> None:
        self._apply_vote(post, "downvote", self.data_source.downvote)

    def remove_user_vote(self, post: Post) -> None:
        self._apply_vote(post, "remove vote", self.data_source.remove_user_vote)

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    def delete_post(self, post: Post) -> None:
        if not self.authorization.may_delete(post):
            error = AuthorizationError(f"Not allowed to delete post {post.id}")
            self._report(error, "delete post", thread_id=post.thread_id)
            raise error
        try:
            self.data_source.delete_post(post)
        except DataSourceError as e:
            self._report(e, "delete post", thread_id=post.thread_id)
            raise

        with self._lock:
            for index, known in enumerate(self._posts):
                if known.id == post.id:
                    del self._posts[index]
                    if index < self._shown:
                        self._shown -= 1
                    break
            thread = self.current_thread
            emptied = thread is not None and not self._posts
            self.view.confirm_post_deleted(post)

            if emptied:
                self._leave_if_deleted(thread)

    def _leave_if_deleted(self, thread: DiscussionThread) -> None:
        """The backend drops a thread with its last post; follow it out."""
        try:
            self.data_source.get_thread(thread.id)
        except NoSuchThreadError:
            logger.info(f"Thread {thread.id} was deleted with its last post")
            self.deactivate()
            self.view.redirect_to_dashboard()
        except DataSourceError as e:
            self._report(e, "delete post", thread_id=thread.id)
            raise

    def report_post(self, post: Post, reason: ReportReason, additional_info: str = "") -> None:
        if not self.authorization.may_report(post):
            error = AuthorizationError(f"Not allowed to report post {post.id}")
            self._report(error, "report post", thread_id=post.thread_id)
            raise error
        report = PostReport(
            post=post,
            reason=reason,
            additional_info=additional_info,
            reporter=self.data_source.get_current_user()
        )
        try:
            self.data_source.report_post(report)
        except DataSourceError as e:
            self._report(e, "report post", thread_id=post.thread_id)
            raise
        self.view.confirm_post_reported(post)

    def ban(self, user: User) -> None:
        if not self.authorization.may_ban(user):
            error = AuthorizationError(f"Not allowed to ban user {user.id}")
            self._report(error, "ban")
            raise error
        try:
            self.data_source.ban(user)
        except DataSourceError as e:
            self._report(e, "ban")
            raise
        self.view.confirm_user_banned(user)

    # ------------------------------------------------------------------
    # Following
    # ------------------------------------------------------------------

    def user_is_following(self, thread: DiscussionThread) -> bool:
        try:
            return self.data_source.is_following(thread)
        except DataSourceError as e:
            logger.warning(f"Could not check follow state of thread {thread.id}: {e}")
            return False

    def follow(self) -> None:
        thread = self._require_thread()
        if not self.authorization.may_follow(thread):
            raise AuthorizationError(f"Not allowed to follow thread {thread.id}")
        try:
            self.data_source.follow(thread)
        except DataSourceError as e:
            self._report(e, "follow", thread_id=thread.id)
            raise
        self.view.confirm_following(thread)

    def unfollow(self) -> None:
        thread = self._require_thread()
        if not self.authorization.may_follow(thread):
            raise AuthorizationError(f"Not allowed to unfollow thread {thread.id}")
        try:
            self.data_source.unfollow(thread)
        except DataSourceError as e:
            self._report(e, "unfollow", thread_id=thread.id)
            raise
        self.view.confirm_unfollowing(thread)
