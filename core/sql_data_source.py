"""
SQL data source for the Agora forum layer.

This module provides SqlDataSource, a DataSource implementation on top of
SQLAlchemy and SQLite. Every public call runs in its own transaction which is
rolled back on error, so callers never observe partial updates.
"""

import copy
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from core.data_source import DataSource
from core.error_handler import (
    DataSourceError,
    NoSuchCategoryError,
    NoSuchPostError,
    NoSuchThreadError,
    NotFoundError,
    ValidationError,
)
from models.database import (
    Base,
    UserRow,
    CategoryRow,
    ThreadRow,
    PostRow,
    AttachmentRow,
    VoteRow,
    SubscriptionRow,
    ReadFlagRow,
    ReportRow,
)
from models.entities import (
    ANONYMOUS_USER,
    Attachment,
    Category,
    DiscussionThread,
    Post,
    PostReport,
    PostVote,
    User,
)


logger = logging.getLogger(__name__)


class SqlDataSource(DataSource):
    """
    Forum storage backed by a SQLite database.

    One instance acts for one user session (see ``set_current_user`` and
    ``for_user``); instances created with ``for_user`` share the engine.
    """

    def __init__(self, db_path: Path, attachment_url_prefix: str = "/attachments"):
        """
        Initialize the data source.

        Args:
            db_path: Path to the SQLite database file
            attachment_url_prefix: Prefix of the download URLs handed out for attachments
        """
        self.db_path = db_path
        self.attachment_url_prefix = attachment_url_prefix.rstrip("/")
        self.engine = None
        self.SessionLocal = None
        self.current_user_id: Optional[int] = None

    def initialize_database(self):
        """
        Initialize the database by creating the schema if it doesn't exist.

        Creates all tables defined in the models and sets up the session factory.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        db_url = f"sqlite:///{self.db_path}"
        self.engine = create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False}
        )

        # Enable foreign key constraints for SQLite
        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        Base.metadata.create_all(self.engine)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database initialized at {self.db_path}")

    def set_current_user(self, user_id: Optional[int]) -> None:
        """
        Scope per-user state to a user.

        Args:
            user_id: Registered user ID, or None for the anonymous visitor
        """
        self.current_user_id = user_id

    def for_user(self, user_id: Optional[int]) -> "SqlDataSource":
        """Return a data source for another session sharing this engine."""
        sibling = copy.copy(self)
        sibling.current_user_id = user_id
        return sibling

    @contextmanager
    def get_session(self) -> Session:
        """
        Context manager for database sessions with automatic rollback on error.

        SQLAlchemy failures are re-raised as DataSourceError; forum errors
        raised inside the block pass through unchanged.

        Yields:
            Session: SQLAlchemy session object
        """
        if self.SessionLocal is None:
            raise DataSourceError("Database has not been initialized")

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database operation failed: {e}")
            raise DataSourceError(f"Database operation failed: {e}", cause=e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _to_user(self, row: Optional[UserRow]) -> User:
        if row is None:
            return ANONYMOUS_USER
        groups = frozenset(g for g in row.groups.split(",") if g)
        return User(
            id=row.id,
            display_name=row.display_name,
            groups=groups,
            banned=row.is_banned
        )

    def _user_by_id(self, session: Session, user_id: Optional[int]) -> User:
        if user_id is None:
            return ANONYMOUS_USER
        return self._to_user(session.get(UserRow, user_id))

    def _to_category(self, row: CategoryRow) -> Category:
        return Category(
            id=row.id,
            name=row.name,
            description=row.description,
            display_order=row.display_order,
            parent_id=row.parent_id
        )

    def _to_thread(self, session: Session, row: ThreadRow) -> DiscussionThread:
        post_count = session.query(PostRow).filter(PostRow.thread_id == row.id).count()
        latest_post = (
            session.query(PostRow)
            .filter(PostRow.thread_id == row.id)
            .order_by(PostRow.created_at.desc(), PostRow.id.desc())
            .first()
        )
        latest_author = self._user_by_id(session, latest_post.author_id) if latest_post else None

        return DiscussionThread(
            id=row.id,
            topic=row.topic,
            category=self._to_category(row.category),
            original_poster=self._user_by_id(session, row.author_id),
            latest_post_author=latest_author,
            post_count=post_count,
            sticky=row.is_sticky,
            locked=row.is_locked,
            created_at=row.created_at,
            last_activity=row.last_activity
        )

    def _to_post(self, session: Session, row: PostRow) -> Post:
        attachments = [
            Attachment(
                filename=a.filename,
                size=a.size,
                download_url=f"{self.attachment_url_prefix}/{a.id}/{a.filename}"
            )
            for a in sorted(row.attachments, key=lambda a: a.id)
        ]
        return Post(
            id=row.id,
            thread_id=row.thread_id,
            author=self._user_by_id(session, row.author_id),
            body_raw=row.body_raw,
            attachments=attachments,
            created_at=row.created_at
        )

    # ------------------------------------------------------------------
    # Row lookup
    # ------------------------------------------------------------------

    def _category_row(self, session: Session, category_id) -> CategoryRow:
        row = session.get(CategoryRow, category_id) if category_id is not None else None
        if row is None:
            raise NoSuchCategoryError(category_id)
        return row

    def _thread_row(self, session: Session, thread_id) -> ThreadRow:
        row = session.get(ThreadRow, thread_id) if thread_id is not None else None
        if row is None:
            raise NoSuchThreadError(thread_id)
        return row

    def _post_row(self, session: Session, post_id) -> PostRow:
        row = session.get(PostRow, post_id) if post_id is not None else None
        if row is None:
            raise NoSuchPostError(post_id)
        return row

    @staticmethod
    def _page(query, start: int, end: int):
        start = max(start, 0)
        if end <= start:
            return []
        return query.offset(start).limit(end - start).all()

    def _is_anonymous(self) -> bool:
        return self.current_user_id is None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, display_name: str, groups: Iterable[str] = ()) -> User:
        """
        Register a new user.

        Args:
            display_name: Name shown next to the user's posts
            groups: Group names used by the authorization policy

        Returns:
            The created user
        """
        if not display_name or not display_name.strip():
            raise ValidationError("Display name must not be empty")

        with self.get_session() as session:
            row = UserRow(display_name=display_name, groups=",".join(sorted(groups)))
            session.add(row)
            session.flush()
            logger.info(f"Created user '{display_name}' with ID {row.id}")
            return self._to_user(row)

    def get_user(self, user_id: int) -> User:
        """
        Retrieve a registered user.

        Raises:
            NotFoundError: If no such user exists
        """
        with self.get_session() as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise NotFoundError(f"No user with id {user_id}", user_id)
            return self._to_user(row)

    def get_current_user(self) -> User:
        if self._is_anonymous():
            return ANONYMOUS_USER
        return self.get_user(self.current_user_id)

    def ban(self, user: User) -> None:
        if user.is_anonymous:
            raise ValidationError("The anonymous user cannot be banned")

        with self.get_session() as session:
            row = session.get(UserRow, user.id)
            if row is None:
                raise NotFoundError(f"No user with id {user.id}", user.id)
            row.is_banned = True
            logger.info(f"Banned user {user.id}")

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _sibling_query(self, session: Session, parent_id: Optional[int]):
        query = session.query(CategoryRow)
        if parent_id is None:
            query = query.filter(CategoryRow.parent_id.is_(None))
        else:
            query = query.filter(CategoryRow.parent_id == parent_id)
        return query.order_by(CategoryRow.display_order.asc(), CategoryRow.id.asc())

    def _renumber_siblings(
        self,
        session: Session,
        parent_id: Optional[int],
        written: Iterable[CategoryRow] = ()
    ) -> None:
        """
        Renumber the children of ``parent_id`` to 1..n keeping their order.

        Rows in ``written`` were just saved: each is placed at the position
        its display order asks for and the other siblings close up around it.
        """
        session.flush()
        written_ids = {row.id for row in written}
        siblings = self._sibling_query(session, parent_id).all()
        rows = [row for row in siblings if row.id not in written_ids]
        placed = sorted(
            (row for row in siblings if row.id in written_ids),
            key=lambda row: (row.display_order, -row.id)
        )
        for row in placed:
            rows.insert(max(row.display_order - 1, 0), row)
        for index, row in enumerate(rows, start=1):
            row.display_order = index

    def get_root_categories(self) -> List[Category]:
        with self.get_session() as session:
            rows = self._sibling_query(session, None).all()
            logger.debug(f"Found {len(rows)} root categories")
            return [self._to_category(row) for row in rows]

    def get_sub_categories(self, category: Category) -> List[Category]:
        if category.id is None:
            return []
        with self.get_session() as session:
            rows = self._sibling_query(session, category.id).all()
            logger.debug(f"Found {len(rows)} subcategories for category {category.id}")
            return [self._to_category(row) for row in rows]

    def get_category(self, category_id: int) -> Category:
        with self.get_session() as session:
            return self._to_category(self._category_row(session, category_id))

    def _apply_category(self, session: Session, category: Category) -> CategoryRow:
        if not category.name or not category.name.strip():
            raise ValidationError("Category name must not be empty")
        if category.parent_id is not None:
            self._category_row(session, category.parent_id)

        if category.id is None:
            row = CategoryRow()
            session.add(row)
        else:
            row = self._category_row(session, category.id)
            ancestor_id = category.parent_id
            while ancestor_id is not None:
                if ancestor_id == row.id:
                    raise ValidationError(
                        f"Category {row.id} cannot be moved under itself or its subcategories"
                    )
                ancestor_id = self._category_row(session, ancestor_id).parent_id

        row.name = category.name
        row.description = category.description or ""
        row.display_order = category.display_order
        row.parent_id = category.parent_id
        return row

    def save_category(self, category: Category) -> Category:
        with self.get_session() as session:
            old_parent = None
            if category.id is not None:
                old_parent = self._category_row(session, category.id).parent_id

            row = self._apply_category(session, category)
            self._renumber_siblings(session, row.parent_id, [row])
            if category.id is not None and old_parent != row.parent_id:
                self._renumber_siblings(session, old_parent)

            logger.info(f"Saved category '{row.name}' ({row.id})")
            return self._to_category(row)

    def save_categories(self, categories: Iterable[Category]) -> None:
        with self.get_session() as session:
            parents = set()
            written = []
            for category in categories:
                if category.id is not None:
                    parents.add(self._category_row(session, category.id).parent_id)
                row = self._apply_category(session, category)
                parents.add(row.parent_id)
                written.append(row)

            for parent_id in parents:
                self._renumber_siblings(session, parent_id, written)
            logger.debug(f"Saved categories under {len(parents)} parents")

    def delete_category(self, category: Category) -> None:
        with self.get_session() as session:
            row = self._category_row(session, category.id)
            parent_id = row.parent_id

            # Children first; threads go with their category row
            pending = [row]
            ordered = []
            visited = set()
            while pending:
                current = pending.pop()
                if current.id in visited:
                    continue
                visited.add(current.id)
                ordered.append(current)
                pending.extend(self._sibling_query(session, current.id).all())
            for current in reversed(ordered):
                session.delete(current)
                session.flush()

            self._renumber_siblings(session, parent_id)
            logger.info(f"Deleted category {category.id} and {len(ordered) - 1} subcategories")

    # ------------------------------------------------------------------
    # Thread listings
    # ------------------------------------------------------------------

    def get_threads(self, category: Category, start: int, end: int) -> List[DiscussionThread]:
        with self.get_session() as session:
            query = (
                session.query(ThreadRow)
                .filter(ThreadRow.category_id == category.id)
                .order_by(
                    ThreadRow.is_sticky.desc(),
                    ThreadRow.last_activity.desc(),
                    ThreadRow.id.desc()
                )
            )
            rows = self._page(query, start, end)
            logger.debug(f"Retrieved {len(rows)} threads for category {category.id} [{start}, {end})")
            return [self._to_thread(session, row) for row in rows]

    def get_thread_count(self, category: Category) -> int:
        with self.get_session() as session:
            return session.query(ThreadRow).filter(ThreadRow.category_id == category.id).count()

    def get_recent_posts(self, start: int, end: int) -> List[DiscussionThread]:
        with self.get_session() as session:
            query = session.query(ThreadRow).order_by(
                ThreadRow.last_activity.desc(),
                ThreadRow.id.desc()
            )
            return [self._to_thread(session, row) for row in self._page(query, start, end)]

    def get_recent_posts_amount(self) -> int:
        with self.get_session() as session:
            return session.query(ThreadRow).count()

    def _my_threads_query(self, session: Session):
        authored = select(PostRow.thread_id).where(PostRow.author_id == self.current_user_id)
        return session.query(ThreadRow).filter(ThreadRow.id.in_(authored))

    def get_my_post_threads(self, start: int, end: int) -> List[DiscussionThread]:
        if self._is_anonymous():
            return []
        with self.get_session() as session:
            query = self._my_threads_query(session).order_by(
                ThreadRow.last_activity.desc(),
                ThreadRow.id.desc()
            )
            return [self._to_thread(session, row) for row in self._page(query, start, end)]

    def get_my_post_threads_count(self) -> int:
        if self._is_anonymous():
            return 0
        with self.get_session() as session:
            return self._my_threads_query(session).count()

    def get_unread_thread_count(self, category: Category) -> int:
        if self._is_anonymous():
            return 0
        with self.get_session() as session:
            total = session.query(ThreadRow).filter(ThreadRow.category_id == category.id).count()
            read = (
                session.query(ReadFlagRow)
                .join(ThreadRow, ReadFlagRow.thread_id == ThreadRow.id)
                .filter(
                    ThreadRow.category_id == category.id,
                    ReadFlagRow.user_id == self.current_user_id
                )
                .count()
            )
            return total - read

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    def get_thread(self, thread_id: int) -> DiscussionThread:
        with self.get_session() as session:
            return self._to_thread(session, self._thread_row(session, thread_id))

    def _add_attachments(self, post_row: PostRow, files: Optional[Dict[str, bytes]]) -> None:
        for filename, data in (files or {}).items():
            # Empty uploads carry nothing worth storing
            if not data:
                continue
            post_row.attachments.append(
                AttachmentRow(filename=filename, size=len(data), data=data)
            )

    def _mark_read(self, session: Session, thread_id: int, user_id: int) -> None:
        flag = (
            session.query(ReadFlagRow)
            .filter(ReadFlagRow.thread_id == thread_id, ReadFlagRow.user_id == user_id)
            .first()
        )
        if flag is None:
            session.add(ReadFlagRow(thread_id=thread_id, user_id=user_id))
        else:
            flag.read_at = datetime.utcnow()

    def save_new_thread(
        self,
        new_thread: DiscussionThread,
        first_post: Post,
        files: Optional[Dict[str, bytes]] = None
    ) -> DiscussionThread:
        if not first_post.body_raw or not first_post.body_raw.strip():
            raise DataSourceError(
                "Cannot create a thread without a first post",
                cause=ValidationError("Post body must not be empty")
            )
        if new_thread.category is None:
            raise DataSourceError(
                "Cannot create a thread without a category",
                cause=ValidationError("Thread category is missing")
            )

        with self.get_session() as session:
            try:
                category_row = self._category_row(session, new_thread.category.id)
            except NoSuchCategoryError as e:
                raise DataSourceError(
                    f"Cannot create a thread in missing category {e.category_id}",
                    cause=e
                ) from e
            now = datetime.utcnow()

            thread_row = ThreadRow(
                topic=new_thread.topic.strip(),
                author_id=self.current_user_id,
                is_sticky=new_thread.sticky,
                is_locked=new_thread.locked,
                created_at=now,
                last_activity=now
            )
            thread_row.category = category_row
            post_row = PostRow(
                author_id=self.current_user_id,
                body_raw=first_post.body_raw.strip(),
                created_at=now
            )
            self._add_attachments(post_row, files)
            thread_row.posts.append(post_row)
            session.add(thread_row)
            session.flush()

            if not self._is_anonymous():
                self._mark_read(session, thread_row.id, self.current_user_id)

            logger.info(
                f"Created thread '{thread_row.topic}' with ID {thread_row.id} "
                f"in category {category_row.id}"
            )
            return self._to_thread(session, thread_row)

    def delete_thread(self, thread: DiscussionThread) -> None:
        with self.get_session() as session:
            session.delete(self._thread_row(session, thread.id))
            logger.info(f"Deleted thread {thread.id}")

    def move(self, thread: DiscussionThread, destination: Category) -> DiscussionThread:
        with self.get_session() as session:
            row = self._thread_row(session, thread.id)
            row.category = self._category_row(session, destination.id)
            session.flush()
            logger.info(f"Moved thread {thread.id} to category {destination.id}")
            return self._to_thread(session, row)

    def _set_thread_flag(self, thread: DiscussionThread, attribute: str, value: bool) -> DiscussionThread:
        with self.get_session() as session:
            row = self._thread_row(session, thread.id)
            setattr(row, attribute, value)
            session.flush()
            logger.info(f"Set {attribute}={value} on thread {thread.id}")
            return self._to_thread(session, row)

    def sticky(self, thread: DiscussionThread) -> DiscussionThread:
        return self._set_thread_flag(thread, "is_sticky", True)

    def unsticky(self, thread: DiscussionThread) -> DiscussionThread:
        return self._set_thread_flag(thread, "is_sticky", False)

    def lock(self, thread: DiscussionThread) -> DiscussionThread:
        return self._set_thread_flag(thread, "is_locked", True)

    def unlock(self, thread: DiscussionThread) -> DiscussionThread:
        return self._set_thread_flag(thread, "is_locked", False)

    # ------------------------------------------------------------------
    # Following and read tracking
    # ------------------------------------------------------------------

    def _subscription(self, session: Session, thread_id: int) -> Optional[SubscriptionRow]:
        return (
            session.query(SubscriptionRow)
            .filter(
                SubscriptionRow.thread_id == thread_id,
                SubscriptionRow.user_id == self.current_user_id
            )
            .first()
        )

    def follow(self, thread: DiscussionThread) -> None:
        if self._is_anonymous():
            logger.debug("Anonymous user cannot follow threads")
            return
        with self.get_session() as session:
            self._thread_row(session, thread.id)
            if self._subscription(session, thread.id) is None:
                session.add(SubscriptionRow(thread_id=thread.id, user_id=self.current_user_id))

    def unfollow(self, thread: DiscussionThread) -> None:
        if self._is_anonymous():
            return
        with self.get_session() as session:
            subscription = self._subscription(session, thread.id)
            if subscription is not None:
                session.delete(subscription)

    def is_following(self, thread: DiscussionThread) -> bool:
        if self._is_anonymous():
            return False
        with self.get_session() as session:
            return self._subscription(session, thread.id) is not None

    def is_thread_read(self, thread: DiscussionThread) -> bool:
        # Anonymous visitors have nothing to catch up on
        if self._is_anonymous():
            return True
        with self.get_session() as session:
            flag = (
                session.query(ReadFlagRow)
                .filter(
                    ReadFlagRow.thread_id == thread.id,
                    ReadFlagRow.user_id == self.current_user_id
                )
                .first()
            )
            return flag is not None

    def mark_thread_read(self, thread: DiscussionThread) -> None:
        if self._is_anonymous():
            return
        with self.get_session() as session:
            self._thread_row(session, thread.id)
            self._mark_read(session, thread.id, self.current_user_id)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def get_posts(self, thread: DiscussionThread) -> List[Post]:
        with self.get_session() as session:
            self._thread_row(session, thread.id)
            rows = (
                session.query(PostRow)
                .filter(PostRow.thread_id == thread.id)
                .order_by(PostRow.created_at.asc(), PostRow.id.asc())
                .all()
            )
            logger.debug(f"Retrieved {len(rows)} posts for thread {thread.id}")
            return [self._to_post(session, row) for row in rows]

    def save_post(self, post: Post, files: Optional[Dict[str, bytes]] = None) -> Post:
        if not post.body_raw or not post.body_raw.strip():
            raise DataSourceError(
                "Cannot save an empty post",
                cause=ValidationError("Post body must not be empty")
            )

        with self.get_session() as session:
            thread_row = self._thread_row(session, post.thread_id)
            now = datetime.utcnow()

            row = PostRow(
                thread_id=thread_row.id,
                author_id=self.current_user_id,
                body_raw=post.body_raw.strip(),
                created_at=now
            )
            self._add_attachments(row, files)
            session.add(row)
            thread_row.last_activity = now

            # The reply is new content for everybody except its author
            stale_flags = session.query(ReadFlagRow).filter(ReadFlagRow.thread_id == thread_row.id)
            if not self._is_anonymous():
                stale_flags = stale_flags.filter(ReadFlagRow.user_id != self.current_user_id)
            for flag in stale_flags.all():
                session.delete(flag)
            if not self._is_anonymous():
                self._mark_read(session, thread_row.id, self.current_user_id)

            session.flush()
            logger.info(f"Created post {row.id} in thread {thread_row.id}")
            return self._to_post(session, row)

    def delete_post(self, post: Post) -> None:
        with self.get_session() as session:
            row = self._post_row(session, post.id)
            thread_row = row.thread
            thread_row.posts.remove(row)
            session.flush()

            if not thread_row.posts:
                session.delete(thread_row)
                logger.info(f"Deleted post {post.id} and its now empty thread {thread_row.id}")
            else:
                logger.info(f"Deleted post {post.id}")

    def report_post(self, report: PostReport) -> None:
        with self.get_session() as session:
            self._post_row(session, report.post.id)
            session.add(ReportRow(
                post_id=report.post.id,
                reporter_id=self.current_user_id,
                reason=report.reason.value,
                additional_info=report.additional_info or ""
            ))
            logger.info(f"Post {report.post.id} reported as {report.reason.value}")

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def _vote_row(self, session: Session, post_id: int) -> Optional[VoteRow]:
        return (
            session.query(VoteRow)
            .filter(VoteRow.post_id == post_id, VoteRow.user_id == self.current_user_id)
            .first()
        )

    def _vote(self, post: Post, value: int) -> None:
        if self._is_anonymous():
            logger.debug("Anonymous user cannot vote")
            return
        with self.get_session() as session:
            self._post_row(session, post.id)
            vote = self._vote_row(session, post.id)
            if vote is None:
                session.add(VoteRow(post_id=post.id, user_id=self.current_user_id, value=value))
            else:
                vote.value = value

    def get_post_vote(self, post: Post) -> PostVote:
        if self._is_anonymous():
            return PostVote.NONE
        with self.get_session() as session:
            vote = self._vote_row(session, post.id)
            if vote is None:
                return PostVote.NONE
            return PostVote.UPVOTE if vote.value > 0 else PostVote.DOWNVOTE

    def upvote(self, post: Post) -> None:
        self._vote(post, 1)

    def downvote(self, post: Post) -> None:
        self._vote(post, -1)

    def remove_user_vote(self, post: Post) -> None:
        if self._is_anonymous():
            return
        with self.get_session() as session:
            vote = self._vote_row(session, post.id)
            if vote is not None:
                session.delete(vote)

    def get_score(self, post: Post) -> int:
        with self.get_session() as session:
            self._post_row(session, post.id)
            score = (
                session.query(func.coalesce(func.sum(VoteRow.value), 0))
                .filter(VoteRow.post_id == post.id)
                .scalar()
            )
            return int(score)
