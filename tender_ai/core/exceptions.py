"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when a model provider call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when a model provider call times out."""
    pass


class GenerationCancelledError(AppError):
    """Raised (or delivered to on_error) when a streamed generation is cancelled."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing (e.g. provider credentials)."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    pass


class VersionConflictError(DatabaseError):
    """Raised when a draft version number could not be allocated."""
    pass


class PipelineError(AppError):
    """Base exception for setup pipeline errors."""
    pass


class StructureAnalysisError(PipelineError):
    """Stage 1: outline structure analysis failed."""
    pass

