"""
Unit tests for the SQL data source.

Tests category tree handling, thread pagination, posting, read tracking,
following and voting against a temporary SQLite database.
"""

import pytest

from core.error_handler import (
    DataSourceError,
    NoSuchCategoryError,
    NoSuchPostError,
    NoSuchThreadError,
    ValidationError,
)
from core.sql_data_source import SqlDataSource
from models.entities import (
    Category,
    DiscussionThread,
    Post,
    PostReport,
    PostVote,
    ReportReason,
)


@pytest.fixture
def data_source(tmp_path):
    """Create and initialize a data source on a temporary database."""
    source = SqlDataSource(tmp_path / "test.db", attachment_url_prefix="/files/")
    source.initialize_database()
    return source


@pytest.fixture
def alice(data_source):
    return data_source.create_user("Alice")


@pytest.fixture
def bob(data_source):
    return data_source.create_user("Bob", ["moderators"])


@pytest.fixture
def as_alice(data_source, alice):
    return data_source.for_user(alice.id)


@pytest.fixture
def as_bob(data_source, bob):
    return data_source.for_user(bob.id)


@pytest.fixture
def category(data_source):
    return data_source.save_category(Category(id=None, name="General", display_order=1))


def new_thread(source, category, topic="Topic", body="First post"):
    return source.save_new_thread(
        DiscussionThread(id=None, topic=topic, category=category),
        Post(id=None, thread_id=None, author=None, body_raw=body)
    )


def reply(source, thread, body="Reply"):
    return source.save_post(Post(id=None, thread_id=thread.id, author=None, body_raw=body))


class TestSessions:
    """Tests for session handling."""

    def test_uninitialized_data_source(self, tmp_path):
        source = SqlDataSource(tmp_path / "never.db")

        with pytest.raises(DataSourceError):
            source.get_root_categories()

    def test_for_user_shares_engine(self, data_source, alice):
        sibling = data_source.for_user(alice.id)

        assert sibling.engine is data_source.engine
        assert sibling.get_current_user().id == alice.id
        assert data_source.get_current_user().is_anonymous


class TestUsers:
    """Tests for users and banning."""

    def test_create_user_with_groups(self, data_source):
        user = data_source.create_user("Mod", ["moderators", "administrators"])

        loaded = data_source.get_user(user.id)
        assert loaded.display_name == "Mod"
        assert loaded.groups == frozenset({"moderators", "administrators"})
        assert not loaded.banned

    def test_create_user_requires_name(self, data_source):
        with pytest.raises(ValidationError):
            data_source.create_user("  ")

    def test_ban(self, as_bob, alice):
        as_bob.ban(alice)

        assert as_bob.get_user(alice.id).banned


class TestCategories:
    """Tests for the category tree."""

    def test_root_categories_ordered_by_display_order(self, data_source):
        data_source.save_category(Category(id=None, name="B", display_order=2))
        data_source.save_category(Category(id=None, name="A", display_order=1))

        names = [c.name for c in data_source.get_root_categories()]

        assert names == ["A", "B"]
        assert [c.display_order for c in data_source.get_root_categories()] == [1, 2]

    def test_saved_category_takes_requested_slot(self, data_source):
        first = data_source.save_category(Category(id=None, name="First", display_order=1))
        data_source.save_category(Category(id=None, name="Second", display_order=2))
        third = data_source.save_category(Category(id=None, name="Third", display_order=3))

        third.display_order = 1
        data_source.save_category(third)
        names = [c.name for c in data_source.get_root_categories()]
        assert names == ["Third", "First", "Second"]

        first = data_source.get_category(first.id)
        first.display_order = 3
        data_source.save_category(first)
        names = [c.name for c in data_source.get_root_categories()]
        assert names == ["Third", "Second", "First"]

    def test_category_cannot_move_under_descendant(self, data_source, category):
        child = data_source.save_category(Category(id=None, name="Child", parent_id=category.id))
        grandchild = data_source.save_category(Category(id=None, name="Grandchild", parent_id=child.id))

        category.parent_id = grandchild.id
        with pytest.raises(ValidationError):
            data_source.save_category(category)

        assert [c.id for c in data_source.get_root_categories()] == [category.id]
        data_source.delete_category(data_source.get_category(category.id))
        assert data_source.get_root_categories() == []

    def test_empty_listings(self, data_source, category):
        assert data_source.get_root_categories() == [category]
        assert data_source.get_sub_categories(category) == []

    def test_get_missing_category(self, data_source):
        with pytest.raises(NoSuchCategoryError) as exc_info:
            data_source.get_category(42)

        assert exc_info.value.category_id == 42

    def test_sub_categories(self, data_source, category):
        child = data_source.save_category(Category(id=None, name="Child", parent_id=category.id))

        assert data_source.get_sub_categories(category) == [child]
        assert child.parent_id == category.id
        assert [c.id for c in data_source.get_root_categories()] == [category.id]

    def test_display_orders_unique_after_bulk_save(self, data_source):
        first = data_source.save_category(Category(id=None, name="First", display_order=1))
        second = data_source.save_category(Category(id=None, name="Second", display_order=2))
        third = data_source.save_category(Category(id=None, name="Third", display_order=3))

        # Two siblings now claim the first position
        third.display_order = 1
        first.display_order = 1
        data_source.save_categories({third, first})

        categories = data_source.get_root_categories()
        orders = [c.display_order for c in categories]
        assert orders == [1, 2, 3]
        assert {c.id for c in categories} == {first.id, second.id, third.id}

    def test_new_category_with_next_order_goes_last(self, data_source, category):
        data_source.save_category(Category(id=None, name="Second", display_order=2))

        names = [c.name for c in data_source.get_root_categories()]

        assert names == ["General", "Second"]

    def test_edit_category(self, data_source, category):
        category.name = "Renamed"
        category.description = "New description"
        data_source.save_category(category)

        loaded = data_source.get_category(category.id)
        assert loaded.name == "Renamed"
        assert loaded.description == "New description"

    def test_empty_name_rejected(self, data_source):
        with pytest.raises(ValidationError):
            data_source.save_category(Category(id=None, name=""))

    def test_delete_category_cascades(self, data_source, as_alice, category):
        child = data_source.save_category(Category(id=None, name="Child", parent_id=category.id))
        thread = new_thread(as_alice, child)

        data_source.delete_category(category)

        assert data_source.get_root_categories() == []
        with pytest.raises(NoSuchCategoryError):
            data_source.get_category(child.id)
        with pytest.raises(NoSuchThreadError):
            data_source.get_thread(thread.id)

    def test_delete_renumbers_siblings(self, data_source):
        first = data_source.save_category(Category(id=None, name="First", display_order=1))
        data_source.save_category(Category(id=None, name="Second", display_order=2))

        data_source.delete_category(first)

        assert [c.display_order for c in data_source.get_root_categories()] == [1]


class TestThreads:
    """Tests for thread creation, listing and moderation."""

    def test_save_new_thread_round_trip(self, as_alice, alice, category):
        thread = as_alice.save_new_thread(
            DiscussionThread(id=None, topic="Hello", category=category),
            Post(id=None, thread_id=None, author=None, body_raw="First!"),
            files={"notes.txt": b"abc"}
        )

        loaded = as_alice.get_thread(thread.id)
        posts = as_alice.get_posts(loaded)
        assert loaded.topic == "Hello"
        assert loaded.category.id == category.id
        assert loaded.original_poster.id == alice.id
        assert loaded.post_count == 1
        assert len(posts) == 1
        assert posts[0].body_raw == "First!"
        assert posts[0].author.id == alice.id
        assert posts[0].attachments[0].filename == "notes.txt"
        assert posts[0].attachments[0].size == 3
        assert posts[0].attachments[0].download_url.startswith("/files/")
        assert posts[0].attachments[0].download_url.endswith("/notes.txt")

    def test_save_new_thread_requires_first_post(self, as_alice, category):
        with pytest.raises(DataSourceError):
            new_thread(as_alice, category, body="   ")

        assert as_alice.get_thread_count(category) == 0

    def test_save_new_thread_requires_category(self, as_alice):
        with pytest.raises(DataSourceError) as exc_info:
            as_alice.save_new_thread(
                DiscussionThread(id=None, topic="Lost"),
                Post(id=None, thread_id=None, author=None, body_raw="Body")
            )

        assert isinstance(exc_info.value.cause, ValidationError)

    def test_save_new_thread_in_missing_category(self, as_alice):
        with pytest.raises(DataSourceError) as exc_info:
            new_thread(as_alice, Category(id=42, name="Gone"))

        assert isinstance(exc_info.value.cause, NoSuchCategoryError)
        assert as_alice.get_recent_posts_amount() == 0

    def test_get_missing_thread(self, data_source):
        with pytest.raises(NoSuchThreadError) as exc_info:
            data_source.get_thread(99)

        assert exc_info.value.thread_id == 99

    def test_pagination(self, as_alice, category):
        for index in range(5):
            new_thread(as_alice, category, topic=f"Thread {index}")

        everything = as_alice.get_threads(category, 0, 5)
        first_page = as_alice.get_threads(category, 0, 2)
        second_page = as_alice.get_threads(category, 2, 4)
        last_page = as_alice.get_threads(category, 4, 6)

        assert as_alice.get_thread_count(category) == 5
        assert len(everything) == 5
        assert first_page + second_page + last_page == everything
        assert as_alice.get_threads(category, 3, 3) == []
        assert as_alice.get_threads(category, 10, 20) == []

    def test_sticky_threads_first(self, as_alice, as_bob, category):
        older = new_thread(as_alice, category, topic="Older")
        new_thread(as_alice, category, topic="Newer")

        as_bob.sticky(older)

        assert as_alice.get_threads(category, 0, 1)[0].id == older.id

    def test_sticky_and_lock_round_trip(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)

        stickied = as_bob.sticky(thread)
        assert stickied.is_sticky()
        assert not as_bob.unsticky(stickied).is_sticky()

        locked = as_bob.lock(thread)
        assert locked.is_locked()
        assert not as_bob.unlock(locked).is_locked()

    def test_move(self, data_source, as_alice, category):
        destination = data_source.save_category(Category(id=None, name="Other", display_order=2))
        thread = new_thread(as_alice, category)

        moved = data_source.move(thread, destination)

        assert moved.category.id == destination.id
        assert data_source.get_thread_count(category) == 0
        assert data_source.get_thread_count(destination) == 1

    def test_delete_thread(self, data_source, as_alice, category):
        thread = new_thread(as_alice, category)

        data_source.delete_thread(thread)

        with pytest.raises(NoSuchThreadError):
            data_source.get_thread(thread.id)

    def test_recent_posts_follow_activity(self, as_alice, as_bob, category):
        first = new_thread(as_alice, category, topic="First")
        new_thread(as_alice, category, topic="Second")

        reply(as_bob, first)

        recent = as_alice.get_recent_posts(0, 10)
        assert as_alice.get_recent_posts_amount() == 2
        assert recent[0].id == first.id
        assert recent[0].latest_post_author.display_name == "Bob"

    def test_my_post_threads(self, as_alice, as_bob, category):
        mine = new_thread(as_alice, category, topic="Mine")
        theirs = new_thread(as_bob, category, topic="Theirs")
        new_thread(as_bob, category, topic="Not mine")
        reply(as_alice, theirs)

        ids = {t.id for t in as_alice.get_my_post_threads(0, 10)}

        assert as_alice.get_my_post_threads_count() == 2
        assert ids == {mine.id, theirs.id}

    def test_anonymous_has_no_posts(self, data_source, as_alice, category):
        new_thread(as_alice, category)

        assert data_source.get_my_post_threads_count() == 0
        assert data_source.get_my_post_threads(0, 10) == []


class TestPosts:
    """Tests for replies and post deletion."""

    def test_reply_counts(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)

        post = reply(as_bob, thread, "Hi there")

        assert post.body_raw == "Hi there"
        assert as_alice.get_thread(thread.id).post_count == 2
        assert [p.id for p in as_alice.get_posts(thread)][-1] == post.id

    def test_empty_reply_rejected(self, as_alice, category):
        thread = new_thread(as_alice, category)

        with pytest.raises(DataSourceError):
            reply(as_alice, thread, "")

    def test_reply_to_missing_thread(self, as_alice):
        with pytest.raises(NoSuchThreadError):
            as_alice.save_post(Post(id=None, thread_id=123, author=None, body_raw="x"))

    def test_delete_post(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)
        post = reply(as_bob, thread)

        as_bob.delete_post(post)

        assert as_alice.get_thread(thread.id).post_count == 1

    def test_deleting_last_post_deletes_thread(self, as_alice, category):
        thread = new_thread(as_alice, category)
        only_post = as_alice.get_posts(thread)[0]

        as_alice.delete_post(only_post)

        with pytest.raises(NoSuchThreadError):
            as_alice.get_thread(thread.id)

    def test_delete_missing_post(self, as_alice):
        with pytest.raises(NoSuchPostError):
            as_alice.delete_post(Post(id=77, thread_id=1, author=None, body_raw="x"))

    def test_report_post(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)
        post = as_alice.get_posts(thread)[0]

        as_bob.report_post(PostReport(post=post, reason=ReportReason.SPAM, additional_info="ads"))


class TestReadTracking:
    """Tests for read flags and unread counts."""

    def test_author_has_read_new_thread(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)

        assert as_alice.is_thread_read(thread)
        assert not as_bob.is_thread_read(thread)
        assert as_bob.get_unread_thread_count(category) == 1

    def test_mark_thread_read(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)

        as_bob.mark_thread_read(thread)
        as_bob.mark_thread_read(thread)

        assert as_bob.is_thread_read(thread)
        assert as_bob.get_unread_thread_count(category) == 0

    def test_reply_marks_thread_unread_for_others(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)
        as_bob.mark_thread_read(thread)

        reply(as_alice, thread)

        assert not as_bob.is_thread_read(thread)
        assert as_alice.is_thread_read(thread)

    def test_anonymous_read_state(self, data_source, as_alice, category):
        thread = new_thread(as_alice, category)

        data_source.mark_thread_read(thread)

        assert data_source.is_thread_read(thread)
        assert data_source.get_unread_thread_count(category) == 0


class TestFollowing:
    """Tests for following threads."""

    def test_follow_is_idempotent(self, as_alice, category):
        thread = new_thread(as_alice, category)

        as_alice.follow(thread)
        as_alice.follow(thread)
        assert as_alice.is_following(thread)

        as_alice.unfollow(thread)
        assert not as_alice.is_following(thread)

    def test_following_is_per_user(self, as_alice, as_bob, category):
        thread = new_thread(as_alice, category)

        as_alice.follow(thread)

        assert not as_bob.is_following(thread)

    def test_anonymous_cannot_follow(self, data_source, as_alice, category):
        thread = new_thread(as_alice, category)

        data_source.follow(thread)

        assert not data_source.is_following(thread)


class TestVoting:
    """Tests for voting."""

    @pytest.fixture
    def post(self, as_alice, category):
        thread = new_thread(as_alice, category)
        return as_alice.get_posts(thread)[0]

    def test_upvote_is_idempotent(self, as_bob, post):
        as_bob.upvote(post)
        as_bob.upvote(post)

        assert as_bob.get_post_vote(post) == PostVote.UPVOTE
        assert as_bob.get_score(post) == 1

    def test_downvote_replaces_upvote(self, as_bob, post):
        as_bob.upvote(post)
        as_bob.downvote(post)

        assert as_bob.get_post_vote(post).is_downvote()
        assert as_bob.get_score(post) == -1

    def test_remove_vote(self, as_bob, post):
        as_bob.upvote(post)
        as_bob.remove_user_vote(post)
        as_bob.remove_user_vote(post)

        assert as_bob.get_post_vote(post) == PostVote.NONE
        assert as_bob.get_score(post) == 0

    def test_score_sums_users(self, data_source, as_alice, as_bob, post):
        carol = data_source.for_user(data_source.create_user("Carol").id)
        as_alice.upvote(post)
        as_bob.upvote(post)
        carol.downvote(post)

        assert data_source.get_score(post) == 1
        assert as_alice.get_post_vote(post) == PostVote.UPVOTE
        assert carol.get_post_vote(post) == PostVote.DOWNVOTE

    def test_anonymous_vote_is_ignored(self, data_source, post):
        data_source.upvote(post)

        assert data_source.get_post_vote(post) == PostVote.NONE
        assert data_source.get_score(post) == 0
