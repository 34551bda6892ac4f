"""
SQLAlchemy database models for the Agora SQL data source.

This module defines the persistent rows behind the forum entities:
users, categories, threads, posts, attachments, votes, subscriptions,
read flags and post reports.
"""

from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, DateTime, Boolean, Text, LargeBinary, ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserRow(Base):
    """
    Represents a registered forum user.

    Groups are stored as a comma separated list and interpreted by the
    authorization policy.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String, nullable=False)
    groups = Column(String, nullable=False, default="")
    is_banned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<UserRow(id={self.id}, display_name={self.display_name})>"


class CategoryRow(Base):
    """
    Represents a category in the topic tree.

    Root categories have a NULL parent. Display order is renumbered by the
    data source after every write so that siblings never share a value.
    """
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(Integer, ForeignKey('categories.id'), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    display_order = Column(Integer, nullable=False, default=0)

    threads = relationship("ThreadRow", back_populates="category", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<CategoryRow(id={self.id}, name={self.name})>"


class ThreadRow(Base):
    """
    Represents a discussion thread within a category.

    A thread always owns at least one post; it is created together with its
    root post and removed when its last post goes.
    """
    __tablename__ = 'threads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey('categories.id'), nullable=False)
    topic = Column(String, nullable=False)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    is_sticky = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_activity = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    category = relationship("CategoryRow", back_populates="threads")
    posts = relationship("PostRow", back_populates="thread", cascade="all, delete-orphan")
    subscriptions = relationship("SubscriptionRow", cascade="all, delete-orphan")
    read_flags = relationship("ReadFlagRow", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ThreadRow(id={self.id}, topic={self.topic})>"


class PostRow(Base):
    """Represents a single post within a thread."""
    __tablename__ = 'posts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(Integer, ForeignKey('threads.id'), nullable=False)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    body_raw = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    thread = relationship("ThreadRow", back_populates="posts")
    attachments = relationship("AttachmentRow", back_populates="post", cascade="all, delete-orphan")
    votes = relationship("VoteRow", cascade="all, delete-orphan")
    reports = relationship("ReportRow", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PostRow(id={self.id}, thread_id={self.thread_id})>"


class AttachmentRow(Base):
    """Represents a file attached to a post, stored inline."""
    __tablename__ = 'attachments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey('posts.id'), nullable=False)
    filename = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)

    post = relationship("PostRow", back_populates="attachments")

    def __repr__(self):
        return f"<AttachmentRow(id={self.id}, filename={self.filename})>"


class VoteRow(Base):
    """
    A single user's vote on a post (+1 or -1).

    The unique constraint makes repeated votes by the same user replace each
    other instead of accumulating.
    """
    __tablename__ = 'post_votes'
    __table_args__ = (UniqueConstraint('post_id', 'user_id'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey('posts.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    value = Column(Integer, nullable=False)


class SubscriptionRow(Base):
    """A user following a thread."""
    __tablename__ = 'thread_subscriptions'
    __table_args__ = (UniqueConstraint('thread_id', 'user_id'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(Integer, ForeignKey('threads.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)


class ReadFlagRow(Base):
    """Marks a thread as read by a user since its last reply."""
    __tablename__ = 'thread_read_flags'
    __table_args__ = (UniqueConstraint('thread_id', 'user_id'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(Integer, ForeignKey('threads.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    read_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ReportRow(Base):
    """A post reported to the moderators."""
    __tablename__ = 'post_reports'

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey('posts.id'), nullable=False)
    reporter_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    reason = Column(String, nullable=False)
    additional_info = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<ReportRow(id={self.id}, post_id={self.post_id}, reason={self.reason})>"
