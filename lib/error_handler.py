from typing import Optional, Tuple, Dict
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    status_code = 500
    default_user_message = "Internal server error"

    def __init__(self, message: str, status_code: Optional[int] = None, user_message: Optional[str] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.user_message = user_message or self.default_user_message
        super().__init__(self.message)

class BadRequest(AppError):
    status_code = 400

    def __init__(self, message: str):
        # Validation messages are safe to hand back to the caller
        super().__init__(message, user_message=message)

class QuotaExceeded(AppError):
    status_code = 403
    default_user_message = "Monthly voice minutes exhausted"

class MethodNotAllowed(AppError):
    status_code = 405
    default_user_message = "Method not allowed"

class DatabaseError(AppError):
    default_user_message = "Database error"

class UpstreamError(AppError):
    default_user_message = "Voice provider error"

class InternalError(AppError):
    pass

class ErrorHandler:
    @staticmethod
    def to_response(error: Exception) -> Tuple[Dict[str, str], int]:
        """Turn any exception into a JSON error body and status code"""
        if isinstance(error, AppError):
            if error.status_code >= 500:
                logger.error(f"{type(error).__name__}: {error.message}")
            else:
                logger.info(f"Rejected request ({error.status_code}): {error.message}")
            return {'error': error.user_message}, error.status_code

        logger.error(f"Unhandled error: {str(error)}", exc_info=error)
        internal = InternalError(str(error))
        return {'error': internal.user_message}, internal.status_code
