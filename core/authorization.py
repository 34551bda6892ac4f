"""
Authorization Port for the Agora forum layer

Answers capability questions ("may the current user sticky this thread?").
Capabilities are a closed table keyed by (Action, EntityKind); nothing is
resolved by name at runtime.

Predicates look only at who the user is and who owns the entity. Entity flag
state such as sticky or locked is combined in by the presenters.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, Iterable, Tuple

from models.entities import Category, DiscussionThread, Post, User


logger = logging.getLogger(__name__)


class Action(Enum):
    """Actions a user may be allowed to perform."""
    FOLLOW = "follow"
    MOVE = "move"
    STICKY = "sticky"
    LOCK = "lock"
    DELETE = "delete"
    EDIT = "edit"
    CREATE_THREAD = "create_thread"
    EDIT_CATEGORIES = "edit_categories"
    REPLY = "reply"
    VOTE = "vote"
    REPORT = "report"
    BAN = "ban"


class EntityKind(Enum):
    """Kinds of entities a capability can be scoped to."""
    FORUM = "forum"
    CATEGORY = "category"
    THREAD = "thread"
    POST = "post"
    USER = "user"


def entity_kind_of(entity) -> EntityKind:
    """Classify an entity for capability lookup; None means the whole forum."""
    if entity is None:
        return EntityKind.FORUM
    if isinstance(entity, Category):
        return EntityKind.CATEGORY
    if isinstance(entity, DiscussionThread):
        return EntityKind.THREAD
    if isinstance(entity, Post):
        return EntityKind.POST
    if isinstance(entity, User):
        return EntityKind.USER
    raise TypeError(f"Not an authorizable entity: {type(entity).__name__}")


class AuthorizationService(ABC):
    """
    Capability predicates for the current user.

    Implementations must be free of side effects.
    """

    @abstractmethod
    def may_follow(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_move(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_sticky(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_lock(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_delete_thread(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_delete_post(self, post: Post) -> bool:
        ...

    @abstractmethod
    def may_delete_category(self, category: Category) -> bool:
        ...

    @abstractmethod
    def may_edit_post(self, post: Post) -> bool:
        ...

    @abstractmethod
    def may_edit_category(self, category: Category) -> bool:
        ...

    @abstractmethod
    def may_create_thread_in(self, category: Category) -> bool:
        ...

    @abstractmethod
    def may_edit_categories(self) -> bool:
        ...

    @abstractmethod
    def may_reply_in(self, thread: DiscussionThread) -> bool:
        ...

    @abstractmethod
    def may_vote(self, post: Post) -> bool:
        ...

    @abstractmethod
    def may_report(self, post: Post) -> bool:
        ...

    @abstractmethod
    def may_ban(self, user: User) -> bool:
        ...

    def may_delete(self, entity) -> bool:
        """Delete capability for a thread, post or category."""
        return self.is_allowed(Action.DELETE, entity)

    def may_edit(self, entity) -> bool:
        """Edit capability for a post or category."""
        return self.is_allowed(Action.EDIT, entity)

    def is_allowed(self, action: Action, entity=None) -> bool:
        """
        Look up and evaluate the predicate for ``(action, kind of entity)``.

        Pairs missing from the table are never allowed.
        """
        kind = entity_kind_of(entity)
        predicate = CAPABILITIES.get((action, kind))
        if predicate is None:
            logger.debug(f"No capability defined for {action.value} on {kind.value}")
            return False
        return predicate(self, entity)


CAPABILITIES: Dict[Tuple[Action, EntityKind], Callable[[AuthorizationService, object], bool]] = {
    (Action.FOLLOW, EntityKind.THREAD): lambda auth, thread: auth.may_follow(thread),
    (Action.MOVE, EntityKind.THREAD): lambda auth, thread: auth.may_move(thread),
    (Action.STICKY, EntityKind.THREAD): lambda auth, thread: auth.may_sticky(thread),
    (Action.LOCK, EntityKind.THREAD): lambda auth, thread: auth.may_lock(thread),
    (Action.DELETE, EntityKind.THREAD): lambda auth, thread: auth.may_delete_thread(thread),
    (Action.DELETE, EntityKind.POST): lambda auth, post: auth.may_delete_post(post),
    (Action.DELETE, EntityKind.CATEGORY): lambda auth, category: auth.may_delete_category(category),
    (Action.EDIT, EntityKind.POST): lambda auth, post: auth.may_edit_post(post),
    (Action.EDIT, EntityKind.CATEGORY): lambda auth, category: auth.may_edit_category(category),
    (Action.CREATE_THREAD, EntityKind.CATEGORY): lambda auth, category: auth.may_create_thread_in(category),
    (Action.EDIT_CATEGORIES, EntityKind.FORUM): lambda auth, _: auth.may_edit_categories(),
    (Action.REPLY, EntityKind.THREAD): lambda auth, thread: auth.may_reply_in(thread),
    (Action.VOTE, EntityKind.POST): lambda auth, post: auth.may_vote(post),
    (Action.REPORT, EntityKind.POST): lambda auth, post: auth.may_report(post),
    (Action.BAN, EntityKind.USER): lambda auth, user: auth.may_ban(user),
}


class GroupAuthorizationService(AuthorizationService):
    """
    Authorization by group membership.

    - Anonymous visitors may only read
    - Banned users may not write anything
    - Members may follow, vote, report, reply, start threads and manage
      their own posts
    - Moderators may additionally move, sticky, lock and delete threads and
      posts, and ban users
    - Administrators may additionally edit the category tree
    """

    def __init__(
        self,
        current_user: Callable[[], User],
        moderator_groups: Iterable[str] = ("moderators",),
        admin_groups: Iterable[str] = ("administrators",)
    ):
        """
        Initialize the policy.

        Args:
            current_user: Callable returning the user of the current session
            moderator_groups: Group names granting moderator rights
            admin_groups: Group names granting administrator rights
        """
        self._current_user = current_user
        self.moderator_groups = frozenset(moderator_groups)
        self.admin_groups = frozenset(admin_groups)

    @property
    def user(self) -> User:
        return self._current_user()

    def _is_member(self) -> bool:
        user = self.user
        return not user.is_anonymous and not user.banned

    def _is_admin(self) -> bool:
        return self._is_member() and bool(self.user.groups & self.admin_groups)

    def _is_moderator(self) -> bool:
        # Administrators moderate as well
        return self._is_member() and bool(
            self.user.groups & (self.moderator_groups | self.admin_groups)
        )

    def _owns(self, post: Post) -> bool:
        user = self.user
        return (
            not user.is_anonymous
            and post.author is not None
            and post.author.id == user.id
        )

    def may_follow(self, thread: DiscussionThread) -> bool:
        return self._is_member()

    def may_move(self, thread: DiscussionThread) -> bool:
        return self._is_moderator()

    def may_sticky(self, thread: DiscussionThread) -> bool:
        return self._is_moderator()

    def may_lock(self, thread: DiscussionThread) -> bool:
        return self._is_moderator()

    def may_delete_thread(self, thread: DiscussionThread) -> bool:
        return self._is_moderator()

    def may_delete_post(self, post: Post) -> bool:
        return self._is_moderator() or (self._is_member() and self._owns(post))

    def may_delete_category(self, category: Category) -> bool:
        return self._is_admin()

    def may_edit_post(self, post: Post) -> bool:
        return self._is_moderator() or (self._is_member() and self._owns(post))

    def may_edit_category(self, category: Category) -> bool:
        return self._is_admin()

    def may_create_thread_in(self, category: Category) -> bool:
        return self._is_member()

    def may_edit_categories(self) -> bool:
        return self._is_admin()

    def may_reply_in(self, thread: DiscussionThread) -> bool:
        return self._is_member()

    def may_vote(self, post: Post) -> bool:
        return self._is_member()

    def may_report(self, post: Post) -> bool:
        return self._is_member()

    def may_ban(self, user: User) -> bool:
        if user.is_anonymous or user.id == self.user.id:
            return False
        return self._is_moderator()
