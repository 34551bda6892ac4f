"""
Core module for the Agora forum.

This module contains the core functionality including:
- The forum data source contract and its SQL implementation
- Authorization (capability checks for the current user)
- Error handling
- Peer presence between viewers of the same thread
"""

__version__ = "0.1.0"

from core.data_source import DataSource
from core.sql_data_source import SqlDataSource
from core.authorization import AuthorizationService, GroupAuthorizationService
from core.presence import PresenceHub
from core.error_handler import (
    ForumError,
    NotFoundError,
    NoSuchCategoryError,
    NoSuchThreadError,
    NoSuchPostError,
    DataSourceError,
    AuthorizationError,
    ValidationError,
)

__all__ = [
    'DataSource',
    'SqlDataSource',
    'AuthorizationService',
    'GroupAuthorizationService',
    'PresenceHub',
    'ForumError',
    'NotFoundError',
    'NoSuchCategoryError',
    'NoSuchThreadError',
    'NoSuchPostError',
    'DataSourceError',
    'AuthorizationError',
    'ValidationError',
]
