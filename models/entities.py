"""
Domain entities for the Agora forum layer.

These are the value records exchanged between the presenters, the data
source and the views. Presenters treat them as read-only snapshots; the data
source returns fresh instances after every mutation.
"""

from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Union
from dataclasses import dataclass, field


@dataclass
class User:
    """
    A forum user.

    ``id`` is None for the anonymous visitor. Group names drive the
    authorization policy.
    """
    id: Optional[int]
    display_name: str
    groups: FrozenSet[str] = frozenset()
    banned: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.id is None


ANONYMOUS_USER = User(id=None, display_name="Anonymous user")


@dataclass
class Attachment:
    """A file attached to a post. The download URL is opaque to this layer."""
    filename: str
    size: int
    download_url: Optional[str] = None


@dataclass
class Category:
    """
    A node in the forum topic tree.

    Root categories have no parent. ``display_order`` orders siblings and is
    unique among them once persisted.
    """
    id: Optional[int]
    name: str
    description: str = ""
    display_order: int = 0
    parent_id: Optional[int] = None

    def __hash__(self):
        return hash(("category", self.id))


class SpecialCategory:
    """
    Base for the pseudo-categories that aggregate threads across the tree.

    Pseudo-categories are never persisted and never contain subcategories.
    """
    id: str = ""
    name: str = ""

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id})>"


class RecentPostsCategory(SpecialCategory):
    """Every thread, ordered by latest activity."""
    id = "recentposts"
    name = "Recent Posts"


class MyPostsCategory(SpecialCategory):
    """Threads the current user has posted in."""
    id = "myposts"
    name = "My Posts"


RECENT_POSTS = RecentPostsCategory()
MY_POSTS = MyPostsCategory()

SPECIAL_CATEGORIES = (RECENT_POSTS, MY_POSTS)

CategorySelection = Union[Category, SpecialCategory]


def resolve_category_id(category_id: str) -> Union[int, SpecialCategory]:
    """
    Translate a category id as it appears in a URL into a selection key.

    Returns the matching pseudo-category or the integer id.

    Raises:
        ValueError: If the id is neither special nor numeric
    """
    for special in SPECIAL_CATEGORIES:
        if category_id == special.id:
            return special
    return int(category_id)


@dataclass
class DiscussionThread:
    """
    A topic consisting of an ordered sequence of posts.

    Sticky and locked are independent flags. A locked thread accepts no new
    replies but can still be moderated.
    """
    id: Optional[int]
    topic: str
    category: Optional[Category] = None
    original_poster: Optional[User] = None
    latest_post_author: Optional[User] = None
    post_count: int = 0
    sticky: bool = False
    locked: bool = False
    created_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    def __post_init__(self):
        if not self.topic or not self.topic.strip():
            raise ValueError("Thread topic must not be empty")

    def __hash__(self):
        return hash(("thread", self.id))

    def is_sticky(self) -> bool:
        return self.sticky

    def is_locked(self) -> bool:
        return self.locked


@dataclass
class Post:
    """A single message within a thread. ``body_raw`` is unrendered markup."""
    id: Optional[int]
    thread_id: Optional[int]
    author: Optional[User]
    body_raw: str
    attachments: List[Attachment] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def __hash__(self):
        return hash(("post", self.id))


class PostVote(Enum):
    """The current user's vote on a post."""
    NONE = 0
    UPVOTE = 1
    DOWNVOTE = -1

    def is_upvote(self) -> bool:
        return self is PostVote.UPVOTE

    def is_downvote(self) -> bool:
        return self is PostVote.DOWNVOTE


class ReportReason(Enum):
    """Why a post was reported to the moderators."""
    SPAM = "spam"
    OFFENSIVE = "offensive"
    WRONG_CATEGORY = "wrong_category"
    MODERATOR_ALERT = "moderator_alert"


@dataclass
class PostReport:
    post: Post
    reason: ReportReason
    additional_info: str = ""
    reporter: Optional[User] = None
