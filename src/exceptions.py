"""
Standardized exception hierarchy for the quest progression engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

import psycopg
from psycopg import errors as pg_errors

logger = logging.getLogger(__name__)


class QuestEngineError(Exception):
    """
    Base exception for all quest engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Stable error code for transport mapping
    - Structured context
    - Automatic logging

    Example:
        raise QuestEngineError(
            message="Failed to commit quest completion",
            user_id="user-1",
            operation="complete_quest",
            context={"quest_id": "quest-1"}
        )
    """

    error_code = "INTERNAL_ERROR"
    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,  # Avoid conflict with logging's 'context'
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for transport responses"""
        return {
            "error": self.__class__.__name__,
            "code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Caller Errors
# ==========================================

class ValidationError(QuestEngineError):
    """
    Raised when an action is not allowed in the current state

    Examples:
    - Illegal quest progress transition
    - Quest is not available
    - Malformed paging input

    Example:
        raise ValidationError(
            message="Quest is not in progress",
            field="status",
            value="COMPLETED",
            user_id="user-1"
        )
    """

    error_code = "VALIDATION_ERROR"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        kwargs.setdefault("context", {"field": field, "value": value})
        super().__init__(message=message, **kwargs)


class NotFoundError(QuestEngineError):
    """Requested user, quest, progress record or submission does not exist"""

    error_code = "NOT_FOUND"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class AuthenticationError(QuestEngineError):
    """No authenticated identity was supplied"""

    error_code = "AUTHENTICATION_ERROR"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str = "User not authenticated",
        **kwargs
    ):
        super().__init__(
            message=message,
            user_message="Authentication required. Please sign in again.",
            **kwargs
        )


# ==========================================
# Concurrency Errors
# ==========================================

class ConflictError(QuestEngineError):
    """
    A conditional write found the snapshot stale

    Internal to the engine: the coordinator retries the whole
    read-compute-commit cycle and never surfaces this past its attempt limit.
    """

    error_code = "CONFLICT_ERROR"
    log_level = logging.INFO

    def __init__(
        self,
        message: str = "Concurrent update detected",
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            message=message,
            user_message="Your progress changed while we were saving it. Please try again.",
            context={
                "record_type": record_type,
                "record_id": record_id,
                "expected_version": expected_version,
            },
            **kwargs
        )


class TransientFailureError(QuestEngineError):
    """Commit kept conflicting after every allowed attempt"""

    error_code = "TRANSIENT_FAILURE"

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        **kwargs
    ):
        self.attempts = attempts
        super().__init__(
            message=message,
            user_message="We couldn't save your progress right now. Please try again in a moment.",
            context={"attempts": attempts},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(QuestEngineError):
    """
    Base class for database-related errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        context = dict(kwargs.pop("context", None) or {})
        context["query"] = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your progress. Please try again.",
            context=context,
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(QuestEngineError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

CONFLICT_SQLSTATE_ERRORS = (
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.UniqueViolation,
)


def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> QuestEngineError:
    """
    Wrap driver exceptions (psycopg) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate QuestEngineError subclass

    Example:
        try:
            await cur.execute(query, params)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="commit", user_id="user-1")
    """
    if isinstance(error, CONFLICT_SQLSTATE_ERRORS):
        return ConflictError(
            message=f"Concurrent write rejected by database: {error}",
            user_id=user_id,
            operation=operation,
            cause=error
        )
    elif isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {error}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {error}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return QuestEngineError(
        message=f"{operation} failed: {error}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
