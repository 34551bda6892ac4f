"""Agora Forum Entry Point.

Command line front end for the Agora forum. It handles configuration,
logging and the SQLite data source, and renders the forum presenters
through the console views.
"""

import sys
import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from config.config_manager import ConfigManager
from core.authorization import GroupAuthorizationService
from core.error_handler import ForumError, get_error_handler
from core.presence import PresenceHub
from core.sql_data_source import SqlDataSource
from logic.category_listing_presenter import CategoryListingPresenter
from logic.category_presenter import CategoryPresenter
from logic.thread_presenter import ThreadPresenter
from models.entities import Category, DiscussionThread, Post
from ui.console_views import (
    ConsoleCategoryListingView,
    ConsoleCategoryView,
    ConsoleThreadView,
)


def setup_logging(log_level: str, log_path: Path, max_log_size: int = 10485760, backup_count: int = 5):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_path: Path to log file
        max_log_size: Size in bytes at which the log file is rotated
        backup_count: Number of rotated log files to keep
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            RotatingFileHandler(
                log_path,
                maxBytes=max_log_size,
                backupCount=backup_count,
                encoding='utf-8'
            ),
            logging.StreamHandler(sys.stderr)
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized at level {log_level}")
    logger.info(f"Log file: {log_path}")


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Agora - discussion forum',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the database and some sample content
  python main.py init-db
  python main.py seed

  # Browse as the anonymous visitor
  python main.py categories
  python main.py category recentposts

  # Read a thread as user 1
  python main.py --user 1 thread 3
        """
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        metavar='PATH',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override logging level from config'
    )

    parser.add_argument(
        '--user',
        type=int,
        default=None,
        metavar='ID',
        help='Act as this registered user (default: anonymous)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('init-db', help='Create the database schema')
    subparsers.add_parser('seed', help='Create sample users, categories and threads')

    categories_parser = subparsers.add_parser('categories', help='List categories')
    categories_parser.add_argument(
        '--parent',
        type=int,
        default=None,
        help='List the subcategories of this category'
    )

    category_parser = subparsers.add_parser('category', help='Show a category')
    category_parser.add_argument(
        'category_id',
        help='Category id, or "recentposts" / "myposts"'
    )

    thread_parser = subparsers.add_parser('thread', help='Show a thread')
    thread_parser.add_argument('thread_id', type=int)

    reply_parser = subparsers.add_parser('reply', help='Reply to a thread')
    reply_parser.add_argument('thread_id', type=int)
    reply_parser.add_argument('body')

    return parser.parse_args(argv)


def seed(data_source: SqlDataSource) -> None:
    """
    Fill an empty database with sample content.

    Args:
        data_source: Initialized data source
    """
    logger = logging.getLogger(__name__)

    admin = data_source.create_user("Admin", ["administrators"])
    moderator = data_source.create_user("Moderator", ["moderators"])
    member = data_source.create_user("Alice")

    as_admin = data_source.for_user(admin.id)
    general = as_admin.save_category(Category(id=None, name="General", description="Anything goes", display_order=1))
    help_desk = as_admin.save_category(Category(id=None, name="Help", description="Questions and answers", display_order=2))
    as_admin.save_category(Category(id=None, name="Installation", display_order=1, parent_id=help_desk.id))

    welcome = as_admin.save_new_thread(
        DiscussionThread(id=None, topic="Welcome to Agora", category=general, sticky=True),
        Post(id=None, thread_id=None, author=None, body_raw="Please read the forum rules.")
    )
    question = data_source.for_user(member.id).save_new_thread(
        DiscussionThread(id=None, topic="How do I attach files?", category=help_desk),
        Post(id=None, thread_id=None, author=None, body_raw="Is there a size limit?")
    )
    data_source.for_user(moderator.id).save_post(
        Post(id=None, thread_id=question.id, author=None, body_raw="Yes, see the settings file.")
    )
    data_source.for_user(member.id).save_post(
        Post(id=None, thread_id=welcome.id, author=None, body_raw="Hello everyone!")
    )

    logger.info(f"Seeded users {admin.id}, {moderator.id} and {member.id}")
    print(f"Created users: Admin={admin.id}, Moderator={moderator.id}, Alice={member.id}")


def main(argv=None) -> int:
    """
    Main application entry point.

    Returns:
        Process exit code
    """
    args = parse_arguments(argv)

    config_path = Path(args.config) if args.config else None
    config_manager = ConfigManager(config_path)

    storage_config = config_manager.get_storage_config()
    forum_config = config_manager.get_forum_config()
    authorization_config = config_manager.get_authorization_config()
    logging_config = config_manager.get_logging_config()

    if args.log_level:
        logging_config.level = args.log_level

    setup_logging(
        logging_config.level,
        config_manager.expand_path(logging_config.log_path),
        logging_config.max_log_size,
        logging_config.backup_count
    )
    logger = logging.getLogger(__name__)

    db_path = config_manager.expand_path(storage_config.db_path)
    data_source = SqlDataSource(db_path, storage_config.attachment_url_prefix)
    data_source.initialize_database()
    data_source.set_current_user(args.user)
    logger.info(f"Database initialized: {db_path}")

    if args.command == 'init-db':
        print(f"Database ready at {db_path}")
        return 0
    if args.command == 'seed':
        seed(data_source)
        return 0

    authorization = GroupAuthorizationService(
        data_source.get_current_user,
        moderator_groups=authorization_config.moderator_groups,
        admin_groups=authorization_config.admin_groups
    )
    error_handler = get_error_handler()
    error_handler.set_notification_callback(lambda title, message, severity: print(f"{title}: {message}"))

    try:
        if args.command == 'categories':
            view = ConsoleCategoryListingView()
            presenter = CategoryListingPresenter(view, data_source, authorization, error_handler)
            view.counts = lambda category: (
                presenter.get_thread_count(category),
                presenter.get_unread_thread_count(category)
            )
            presenter.init()
            root: Optional[Category] = None
            if args.parent is not None:
                root = data_source.get_category(args.parent)
            presenter.load_root(root)

        elif args.command == 'category':
            view = ConsoleCategoryView(page_size=forum_config.thread_page_size)
            presenter = CategoryPresenter(view, data_source, authorization, error_handler)
            presenter.set_current_category_by_id(args.category_id)

        elif args.command in ('thread', 'reply'):
            view = ConsoleThreadView()
            presenter = ThreadPresenter(
                view,
                data_source,
                authorization,
                presence=PresenceHub(),
                post_page_size=forum_config.post_page_size,
                error_handler=error_handler
            )
            view.presenter = presenter
            presenter.set_current_thread_by_id(args.thread_id)
            if presenter.current_thread is None:
                return 1
            while presenter.append_next_page():
                pass
            if args.command == 'reply':
                view.input_value_changed(args.body)
                if view.submit_reply() is None:
                    raise ValueError("Reply must not be empty")
            presenter.deactivate()

    except (ForumError, ValueError) as e:
        error_handler.handle_error(e, args.command)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
