"""
Tests for the reply draft cache and its use by the console thread view.
"""

import io
from unittest.mock import Mock

import pytest

from logic.input_cache import InputCache
from logic.thread_presenter import ThreadPresenter
from logic.views import ThreadViewData
from ui.console_views import ConsoleThreadView


def test_put_and_get():
    cache = InputCache()

    cache.put("Welcome", "Half a reply")

    assert cache.get("Welcome") == "Half a reply"
    assert "Welcome" in cache
    assert cache.get("Other") is None


def test_remove():
    cache = InputCache()
    cache.put("Welcome", "draft")

    assert cache.remove("Welcome") == "draft"
    assert cache.remove("Welcome") is None
    assert len(cache) == 0


def test_empty_text_clears_draft():
    cache = InputCache()
    cache.put("Welcome", "draft")

    cache.put("Welcome", "")

    assert "Welcome" not in cache


class TestThreadViewDrafts:
    """Tests for reply drafts kept across thread views of one session."""

    @pytest.fixture
    def cache(self):
        return InputCache()

    @pytest.fixture
    def view_data(self):
        return ThreadViewData(
            thread_id=5,
            thread_topic="Hello",
            category_name="General",
            may_reply=True,
            is_locked=False,
            is_following=False
        )

    @pytest.fixture
    def view(self, cache):
        thread_view = ConsoleThreadView(io.StringIO(), cache)
        thread_view.presenter = Mock(spec=ThreadPresenter)
        return thread_view

    def test_draft_restored_when_thread_reopened(self, view, cache, view_data):
        view.set_view_data(view_data)
        view.input_value_changed("Half a thought")

        reopened = ConsoleThreadView(io.StringIO(), cache)
        reopened.set_view_data(view_data)

        assert reopened.reply_draft == "Half a thought"
        view.presenter.input_value_changed.assert_called_once()

    def test_submit_sends_and_clears_draft(self, view, cache, view_data):
        view.set_view_data(view_data)
        view.input_value_changed("Done")

        view.submit_reply()

        view.presenter.send_reply.assert_called_once_with("Done", None)
        assert cache.get("Hello") is None
        assert view.reply_draft == ""

    def test_blank_draft_is_not_sent(self, view, view_data):
        view.set_view_data(view_data)
        view.input_value_changed("   ")

        assert view.submit_reply() is None
        view.presenter.send_reply.assert_not_called()

    def test_quote_goes_into_draft(self, view, cache, view_data):
        view.set_view_data(view_data)

        view.append_quote("[quote=Alice]Hi[/quote]")

        assert cache.get("Hello") == "[quote=Alice]Hi[/quote]"
