"""Error handling framework for the reposync MCP server."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from .git_sync.error_types import GitSyncError


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    GIT_SYNC = "git_sync"
    CONFIGURATION = "configuration"
    FILE_IO = "file_io"
    VALIDATION = "validation"
    SYSTEM = "system"


@dataclass
class ErrorResponse:
    """Standardized error response format for repository operations."""
    error: str
    error_code: str
    message: str
    timestamp: str
    category: str
    context: Optional[Dict[str, Any]] = None
    output: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert error response to dictionary format."""
        result = {
            "error": self.error,
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "category": self.category
        }
        if self.context:
            result["context"] = self.context
        if self.output:
            result["output"] = self.output
        return result


class ErrorHandler:
    """Turns exceptions from repository operations into ErrorResponse values."""

    def __init__(self):
        self.logger = logging.getLogger('reposync.error_handler')

    def handle_git_sync_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle Git synchronization errors."""
        context = dict(context or {})

        if isinstance(error, GitSyncError):
            error_code = error.error_code
            message = error.message
            output = error.output
            context["failure_category"] = error.category.value
            if error.operation:
                context["operation"] = error.operation
            if error.exit_code is not None:
                context["exit_code"] = error.exit_code
            update_context = error.context
            if update_context is not None:
                # What the safe update still owes after the failure
                context["owes_checkout_back"] = update_context.owes_checkout_back
                context["owes_stash_pop"] = update_context.owes_stash_pop
                context["restore_ref"] = update_context.restore_ref
            unrestored = getattr(error, "unrestored", None)
            if unrestored:
                context["unrestored"] = list(unrestored)
            restored = getattr(error, "restored", None)
            if restored:
                context["restored"] = list(restored)
        elif "not a git repository" in str(error).lower():
            error_code = "GIT_NOT_REPOSITORY"
            message = "Git repository not initialized"
            output = ""
        else:
            error_code = "GIT_GENERAL_ERROR"
            message = f"Git operation failed: {str(error)}"
            output = ""

        error_response = ErrorResponse(
            error="Git sync operation failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=ErrorCategory.GIT_SYNC.value,
            context=context,
            output=output
        )

        self.logger.warning(
            f"Git sync error: {message}",
            extra={
                'operation': 'git_sync_error',
                'error_code': error_code,
                'repository_path': context.get('repository_path')
            }
        )

        return error_response

    def handle_validation_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle input validation errors."""
        context = context or {}

        if "action" in str(error).lower():
            error_code = "VALIDATION_INVALID_ACTION"
        elif "directory" in str(error).lower():
            error_code = "VALIDATION_INVALID_DIRECTORY"
        else:
            error_code = "VALIDATION_GENERAL_ERROR"
        message = f"Input validation failed: {str(error)}"

        error_response = ErrorResponse(
            error="Validation error",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=ErrorCategory.VALIDATION.value,
            context=context
        )

        self.logger.warning(
            f"Validation error: {message}",
            extra={
                'operation': 'validation_error',
                'error_code': error_code,
                'field': context.get('field'),
                'value': context.get('value')
            }
        )

        return error_response

    def handle_file_io_error(self, error: Exception, context: Dict[str, Any] = None) -> ErrorResponse:
        """Handle file I/O errors."""
        context = context or {}

        if isinstance(error, FileNotFoundError):
            error_code = "FILE_NOT_FOUND"
            message = f"File not found: {context.get('file_path', 'unknown')}"
        elif isinstance(error, PermissionError):
            error_code = "FILE_PERMISSION_DENIED"
            message = "Permission denied accessing file"
        else:
            error_code = "FILE_IO_ERROR"
            message = f"File system error: {str(error)}"

        error_response = ErrorResponse(
            error="File operation failed",
            error_code=error_code,
            message=message,
            timestamp=datetime.now().isoformat(),
            category=ErrorCategory.FILE_IO.value,
            context=context
        )

        self.logger.error(
            f"File I/O error: {message}",
            extra={
                'operation': 'file_io_error',
                'error_code': error_code,
                'file_path': context.get('file_path')
            }
        )

        return error_response

    def create_success_response(self, operation: str, data: Dict[str, Any], context: Dict[str, Any] = None) -> Dict[str, Any]:
        """Create a standardized success response for repository operations."""
        response = {
            "success": True,
            "operation": operation,
            "timestamp": datetime.now().isoformat(),
            "data": data
        }

        if context:
            response["context"] = context

        return response


# Initialize global error handler
error_handler = ErrorHandler()
