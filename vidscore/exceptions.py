from typing import Dict, Optional


class VidScoreException(Exception):
    """Base exception for the VidScore pipeline."""

    def __init__(self, message: str, error_code: str = None, details: Dict = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ProviderException(VidScoreException):
    """Raised when an external provider fails."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class ConfigurationException(VidScoreException):
    """Raised when configuration is invalid."""
    pass


class ValidationException(VidScoreException):
    """Raised when caller input validation fails."""
    pass


class ResponseShapeException(VidScoreException):
    """Raised when a collaborator returns a payload of unknown shape."""
    pass


class IndexingFailedException(VidScoreException):
    """Raised when the remote indexing task reports failure."""
    pass


class IndexingTimeoutException(VidScoreException):
    """Raised when the indexing task does not finish within the poll budget."""
    pass


class ExtractionTimeoutException(VidScoreException):
    """Raised when signal extraction exceeds its stage timeout."""
    pass
