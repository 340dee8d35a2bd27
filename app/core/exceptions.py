from typing import Optional, Any

class RelayBotError(Exception):
    """
    Base exception for the relay bot.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class ResourceNotFoundError(RelayBotError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found", details={"user_id": user_id})
        self.user_id = user_id

class ApplicationNotFoundError(ResourceNotFoundError):
    def __init__(self, application_id: str):
        super().__init__(f"Application {application_id} not found", details={"application_id": application_id})
        self.application_id = application_id

class AuthenticationError(RelayBotError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class ValidationError(RelayBotError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)

class FileTooLargeError(ValidationError):
    """
    Raised when an application file exceeds the size ceiling.
    """
    def __init__(self, file_size: int, max_size: int):
        super().__init__(
            f"File of {file_size} bytes exceeds the {max_size} byte limit",
            details={"file_size": file_size, "max_size": max_size}
        )
        self.file_size = file_size
        self.max_size = max_size

class MissingFileError(ValidationError):
    """
    Raised when a file is required but the message carries none.
    """
    def __init__(self, message: str = "A file is required"):
        super().__init__(message)

class EmptySubmissionError(ValidationError):
    """
    Raised when submitting a draft that holds no files.
    """
    def __init__(self, user_id: int):
        super().__init__("Draft application has no files", details={"user_id": user_id})
        self.user_id = user_id

class ExternalServiceError(RelayBotError):
    """
    Raised when an external service (e.g., Telegram Bot API) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)
