"""
Tests for the domain entities.
"""

import pytest

from models.entities import (
    ANONYMOUS_USER,
    MY_POSTS,
    RECENT_POSTS,
    Category,
    DiscussionThread,
    MyPostsCategory,
    Post,
    PostVote,
    RecentPostsCategory,
    User,
    resolve_category_id,
)


class TestResolveCategoryId:
    """Tests for translating URL ids into selections."""

    def test_special_ids(self):
        assert resolve_category_id("recentposts") is RECENT_POSTS
        assert resolve_category_id("myposts") is MY_POSTS
        assert isinstance(RECENT_POSTS, RecentPostsCategory)
        assert isinstance(MY_POSTS, MyPostsCategory)

    def test_numeric_id(self):
        assert resolve_category_id("42") == 42

    def test_invalid_id(self):
        with pytest.raises(ValueError):
            resolve_category_id("general")

    def test_special_ids_are_case_sensitive(self):
        with pytest.raises(ValueError):
            resolve_category_id("RecentPosts")


class TestDiscussionThread:
    """Tests for DiscussionThread."""

    def test_flags_are_independent(self):
        thread = DiscussionThread(id=1, topic="Hello", sticky=True)

        assert thread.is_sticky()
        assert not thread.is_locked()

    def test_empty_topic_rejected(self):
        with pytest.raises(ValueError):
            DiscussionThread(id=None, topic="   ")

    def test_hashable(self):
        thread = DiscussionThread(id=1, topic="Hello")
        assert thread in {thread}


class TestCategory:
    """Tests for Category."""

    def test_modified_categories_fit_in_a_set(self):
        first = Category(id=1, name="General", display_order=1)
        second = Category(id=2, name="Help", display_order=2)

        modified = {first, second, first}

        assert len(modified) == 2

    def test_renamed_category_stays_in_set(self):
        category = Category(id=1, name="General", display_order=1)
        modified = {category}

        category.name = "Renamed"

        assert category in modified

    def test_root_category_has_no_parent(self):
        assert Category(id=1, name="General").parent_id is None


class TestUserAndVotes:
    """Tests for User and PostVote."""

    def test_anonymous_user(self):
        assert ANONYMOUS_USER.is_anonymous
        assert not User(id=3, display_name="Alice").is_anonymous

    def test_post_vote_predicates(self):
        assert PostVote.UPVOTE.is_upvote()
        assert not PostVote.UPVOTE.is_downvote()
        assert PostVote.DOWNVOTE.is_downvote()
        assert not PostVote.NONE.is_upvote()
        assert not PostVote.NONE.is_downvote()

    def test_post_defaults(self):
        post = Post(id=None, thread_id=1, author=None, body_raw="text")
        assert post.attachments == []
