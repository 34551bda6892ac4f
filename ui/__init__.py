"""
UI module for the Agora forum.

This module contains plain-text implementations of the view ports used by
the command line entry point.
"""

from ui.console_views import (
    ConsoleCategoryListingView,
    ConsoleCategoryView,
    ConsoleThreadView,
)

__all__ = [
    'ConsoleCategoryView',
    'ConsoleThreadView',
    'ConsoleCategoryListingView',
]
