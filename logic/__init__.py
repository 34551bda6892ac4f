"""
Presentation Logic Layer for the Agora forum

This module provides the presenters that sit between the view ports and the
core forum services (data source, authorization, presence).
"""

from logic.category_presenter import CategoryPresenter
from logic.thread_presenter import ThreadPresenter
from logic.category_listing_presenter import CategoryListingPresenter, ContextMenuOperation
from logic.thread_provider import ThreadProvider
from logic.input_cache import InputCache

__all__ = [
    'CategoryPresenter',
    'ThreadPresenter',
    'CategoryListingPresenter',
    'ContextMenuOperation',
    'ThreadProvider',
    'InputCache',
]
