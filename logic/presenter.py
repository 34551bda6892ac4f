"""
Base class shared by the forum presenters.
"""

from typing import Generic, Optional, TypeVar

from core.authorization import AuthorizationService
from core.data_source import DataSource
from core.error_handler import ErrorHandler, get_error_handler


V = TypeVar("V")


class Presenter(Generic[V]):
    """
    Couples a view with the data source and the authorization service.

    Presenters run synchronously: each method completes its data source calls
    before returning to the view.
    """

    def __init__(
        self,
        view: V,
        data_source: DataSource,
        authorization: AuthorizationService,
        error_handler: Optional[ErrorHandler] = None
    ):
        """
        Initialize a presenter.

        Args:
            view: View port receiving the presenter's output
            data_source: Forum storage backend
            authorization: Capability service for the current user
            error_handler: Error handler used to log failures (default: global)
        """
        self.view = view
        self.data_source = data_source
        self.authorization = authorization
        self.error_handler = error_handler or get_error_handler()

    def _report(self, error: Exception, operation: str, **ids) -> None:
        """Log a failure through the error handler without notifying the view."""
        self.error_handler.handle_error(error, operation, show_notification=False, **ids)
