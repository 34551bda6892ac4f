"""
End-to-end tests for the command line entry point.
"""

import pytest
import yaml

import main


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "settings.yaml"
    with open(path, 'w') as f:
        yaml.dump({
            'storage': {'db_path': str(tmp_path / "forum.db")},
            'logging': {'log_path': str(tmp_path / "logs" / "agora.log")},
        }, f)
    return path


@pytest.fixture
def seeded(config_path, capsys):
    assert main.main(["--config", str(config_path), "seed"]) == 0
    capsys.readouterr()
    return config_path


def run(config_path, *args):
    return main.main(["--config", str(config_path), *args])


def test_init_db(config_path, tmp_path, capsys):
    assert run(config_path, "init-db") == 0

    assert (tmp_path / "forum.db").exists()
    assert "Database ready" in capsys.readouterr().out


def test_list_categories(seeded, capsys):
    assert run(seeded, "categories") == 0

    out = capsys.readouterr().out
    assert "[1] General" in out
    assert "[2] Help" in out
    assert "Installation" not in out


def test_list_sub_categories(seeded, capsys):
    assert run(seeded, "categories", "--parent", "2") == 0

    assert "Installation" in capsys.readouterr().out


def test_show_category(seeded, capsys):
    assert run(seeded, "category", "1") == 0

    out = capsys.readouterr().out
    assert "Welcome to Agora" in out
    assert "[sticky]" in out


def test_show_missing_category(seeded, capsys):
    assert run(seeded, "category", "42") == 0

    assert "Category not found: 42" in capsys.readouterr().out


def test_show_recent_posts(seeded, capsys):
    assert run(seeded, "category", "recentposts") == 0

    out = capsys.readouterr().out
    assert "Welcome to Agora" in out
    assert "How do I attach files?" in out


def test_show_thread(seeded, capsys):
    assert run(seeded, "--user", "3", "thread", "1") == 0

    out = capsys.readouterr().out
    assert "Please read the forum rules." in out
    assert "Hello everyone!" in out


def test_show_missing_thread(seeded, capsys):
    assert run(seeded, "thread", "99") == 1

    assert "Thread not found: 99" in capsys.readouterr().out


def test_reply(seeded, capsys):
    assert run(seeded, "--user", "3", "reply", "2", "Thanks!") == 0
    capsys.readouterr()

    assert run(seeded, "thread", "2") == 0
    assert "Thanks!" in capsys.readouterr().out


def test_anonymous_reply_is_refused(seeded, capsys):
    assert run(seeded, "reply", "2", "Let me in") == 1


def test_blank_reply_is_refused(seeded, capsys):
    assert run(seeded, "thread", "2") == 0
    before = capsys.readouterr().out.count("wrote:")

    assert run(seeded, "--user", "3", "reply", "2", "   ") == 1
    capsys.readouterr()

    assert run(seeded, "thread", "2") == 0
    assert capsys.readouterr().out.count("wrote:") == before
