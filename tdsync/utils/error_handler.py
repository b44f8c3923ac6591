"""
Error handling utilities
"""

from typing import Optional
from tdsync.models.response import ErrorResponse
from tdsync.utils.logger import logger


class SyncError(Exception):
    """Base exception for sync errors"""
    pass


class APIError(SyncError):
    """API error exception"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class TaskNotFoundError(APIError):
    """Remote object no longer exists"""
    pass


def handle_error(error: Exception, context: Optional[str] = None) -> ErrorResponse:
    """
    Log error and build an error response
    
    Args:
        error: Exception to handle
        context: Short description of the failed operation
        
    Returns:
        ErrorResponse describing the failure
    """
    prefix = f"{context}: " if context else ""
    logger.error(f"{prefix}{error}", exc_info=True)
    
    if isinstance(error, TaskNotFoundError):
        return ErrorResponse(
            message=f"{prefix}task not found in Todoist",
            error_code=str(error.status_code) if error.status_code else None,
        )
    
    if isinstance(error, APIError):
        return ErrorResponse(
            message=f"{prefix}Todoist API error: {error.message}",
            error_code=str(error.status_code) if error.status_code else None,
        )
    
    return ErrorResponse(message=f"{prefix}unexpected error: {error}")
