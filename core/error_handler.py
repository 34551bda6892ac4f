"""
Error Handler for the Agora forum layer

Defines the forum error taxonomy and provides centralized error handling with
categorization, logging, and user-friendly notifications.
"""

import logging
import traceback
from enum import Enum
from typing import Optional, Callable
from dataclasses import dataclass


logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification."""
    NOT_FOUND = "not_found"
    DATA_SOURCE = "data_source"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for an error."""
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    user_message: str
    technical_details: str
    category_id: Optional[int] = None
    thread_id: Optional[int] = None


# Custom Exception Classes

class ForumError(Exception):
    """Base exception for forum errors."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN):
        super().__init__(message)
        self.category = category


class NotFoundError(ForumError):
    """A requested entity does not exist. Carries the requested id."""

    def __init__(self, message: str, requested_id):
        super().__init__(message, ErrorCategory.NOT_FOUND)
        self.requested_id = requested_id


class NoSuchCategoryError(NotFoundError):
    """The requested category does not exist."""

    def __init__(self, category_id):
        super().__init__(f"No category with id {category_id}", category_id)
        self.category_id = category_id


class NoSuchThreadError(NotFoundError):
    """The requested thread does not exist."""

    def __init__(self, thread_id):
        super().__init__(f"No thread with id {thread_id}", thread_id)
        self.thread_id = thread_id


class NoSuchPostError(NotFoundError):
    """The requested post does not exist."""

    def __init__(self, post_id):
        super().__init__(f"No post with id {post_id}", post_id)
        self.post_id = post_id


class DataSourceError(ForumError):
    """
    The storage backend failed.

    Wraps the backend specific exception in ``cause``. Not recoverable
    locally.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, ErrorCategory.DATA_SOURCE)
        self.cause = cause


class AuthorizationError(ForumError):
    """An action was attempted without the required capability."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.AUTHORIZATION)


class ValidationError(ForumError):
    """Entity data failed validation."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.VALIDATION)


class ErrorHandler:
    """
    Global error handler for the forum layer.

    Provides centralized error handling with:
    - Error categorization (not found, data source, authorization, validation)
    - Severity classification
    - User-friendly error messages
    - Detailed logging for debugging
    - Notification callbacks for view integration

    Usage:
        error_handler = ErrorHandler()
        error_handler.set_notification_callback(view.show_error)

        try:
            data_source.sticky(thread)
        except DataSourceError as e:
            error_handler.handle_error(e, "sticky", thread_id=thread.id)
            raise
    """

    def __init__(self):
        """Initialize error handler."""
        self._notification_callback: Optional[Callable] = None
        self._error_count = 0

    def set_notification_callback(self, callback: Callable):
        """
        Set callback for displaying notifications to user.

        Args:
            callback: Function(title: str, content: str, severity: ErrorSeverity)
        """
        self._notification_callback = callback

    def handle_error(
        self,
        error: Exception,
        context: str,
        category_id: Optional[int] = None,
        thread_id: Optional[int] = None,
        show_notification: bool = True
    ) -> ErrorContext:
        """
        Handle an error with appropriate categorization and response.

        The handler never raises; callers decide whether to re-raise.

        Args:
            error: The exception that occurred
            context: Description of the operation that failed
            category_id: Optional category ID if error relates to a category
            thread_id: Optional thread ID if error relates to a thread
            show_notification: Whether to show user notification (default: True)

        Returns:
            ErrorContext with categorized error information
        """
        self._error_count += 1

        if isinstance(error, ForumError):
            category = error.category
        else:
            category = self._categorize_error(error)

        severity = self._determine_severity(error, category)
        user_message = self._generate_user_message(error, category, context)
        technical_details = self._get_technical_details(error)

        error_context = ErrorContext(
            category=category,
            severity=severity,
            operation=context,
            user_message=user_message,
            technical_details=technical_details,
            category_id=category_id,
            thread_id=thread_id
        )

        self._log_error(error_context)

        if show_notification and self._notification_callback:
            self._show_notification(error_context)

        return error_context

    def _categorize_error(self, error: Exception) -> ErrorCategory:
        """
        Categorize a foreign error based on its type and message.

        Args:
            error: The exception to categorize

        Returns:
            ErrorCategory
        """
        error_type = type(error).__name__.lower()
        error_msg = str(error).lower()

        if any(keyword in error_type or keyword in error_msg for keyword in [
            'database', 'sqlite', 'sqlalchemy', 'integrity', 'operational', 'connection'
        ]):
            return ErrorCategory.DATA_SOURCE

        if isinstance(error, (ValueError, TypeError)):
            return ErrorCategory.VALIDATION

        if isinstance(error, (KeyError, LookupError)):
            return ErrorCategory.NOT_FOUND

        return ErrorCategory.UNKNOWN

    def _determine_severity(
        self,
        error: Exception,
        category: ErrorCategory
    ) -> ErrorSeverity:
        """
        Determine the severity of an error.

        Args:
            error: The exception
            category: Error category

        Returns:
            ErrorSeverity
        """
        # A missing entity is an expected user-facing condition
        if category == ErrorCategory.NOT_FOUND:
            return ErrorSeverity.INFO

        if category == ErrorCategory.VALIDATION:
            return ErrorSeverity.WARNING

        # Bypassing a capability gate is a programming error
        if category == ErrorCategory.AUTHORIZATION:
            return ErrorSeverity.CRITICAL

        return ErrorSeverity.ERROR

    def _generate_user_message(
        self,
        error: Exception,
        category: ErrorCategory,
        context: str
    ) -> str:
        """
        Generate a user-friendly error message.

        Args:
            error: The exception
            category: Error category
            context: Operation context

        Returns:
            User-friendly error message
        """
        if category == ErrorCategory.NOT_FOUND:
            if isinstance(error, NoSuchCategoryError):
                return f"The category {error.category_id} could not be found."
            elif isinstance(error, NoSuchThreadError):
                return f"The thread {error.thread_id} could not be found."
            return "The requested item could not be found."
        elif category == ErrorCategory.DATA_SOURCE:
            return f"The forum could not complete {context}. Please try again later."
        elif category == ErrorCategory.AUTHORIZATION:
            return "You are not allowed to do that."
        elif category == ErrorCategory.VALIDATION:
            return f"Invalid input for {context}: {error}"
        else:
            return f"An error occurred during {context}."

    def _get_technical_details(self, error: Exception) -> str:
        """
        Get technical details for logging.

        Args:
            error: The exception

        Returns:
            Technical details string
        """
        details = [
            f"Exception Type: {type(error).__name__}",
            f"Message: {str(error)}",
        ]
        cause = getattr(error, 'cause', None)
        if cause is not None:
            details.append(f"Cause: {type(cause).__name__}: {cause}")
        details.append("Traceback:")
        details.append(traceback.format_exc())
        return "\n".join(details)

    def _log_error(self, error_context: ErrorContext):
        """
        Log error with appropriate level.

        Args:
            error_context: Error context information
        """
        log_message = (
            f"[{error_context.category.value.upper()}] "
            f"{error_context.operation}: {error_context.user_message}"
        )

        extra_info = []
        if error_context.category_id is not None:
            extra_info.append(f"category_id={error_context.category_id}")
        if error_context.thread_id is not None:
            extra_info.append(f"thread_id={error_context.thread_id}")

        if extra_info:
            log_message += f" ({', '.join(extra_info)})"

        if error_context.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
            logger.critical(f"Technical details:\n{error_context.technical_details}")
        elif error_context.severity == ErrorSeverity.ERROR:
            logger.error(log_message)
            logger.debug(f"Technical details:\n{error_context.technical_details}")
        elif error_context.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)

    def _show_notification(self, error_context: ErrorContext):
        """
        Show notification to user.

        Args:
            error_context: Error context information
        """
        title_map = {
            ErrorCategory.NOT_FOUND: "Not Found",
            ErrorCategory.DATA_SOURCE: "Forum Unavailable",
            ErrorCategory.AUTHORIZATION: "Not Allowed",
            ErrorCategory.VALIDATION: "Invalid Input",
            ErrorCategory.UNKNOWN: "Error"
        }

        title = title_map.get(error_context.category, "Error")

        try:
            self._notification_callback(
                title,
                error_context.user_message,
                error_context.severity
            )
        except Exception as e:
            logger.error(f"Failed to show notification: {e}")

    def get_error_count(self) -> int:
        """
        Get total number of errors handled.

        Returns:
            Error count
        """
        return self._error_count

    def reset_error_count(self):
        """Reset error counter."""
        self._error_count = 0


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """
    Get the global error handler instance.

    Returns:
        Global ErrorHandler instance
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def set_error_handler(handler: ErrorHandler):
    """
    Set the global error handler instance.

    Args:
        handler: ErrorHandler instance to use globally
    """
    global _global_error_handler
    _global_error_handler = handler
