"""Custom exceptions for the DR analyzer application."""


class DRAnalyzerError(Exception):
    """Base exception for all DR analyzer errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(DRAnalyzerError):
    """Raised when there are configuration issues."""

    def __init__(self, message: str, parameter: str = None, details: str = None):
        super().__init__(message, details)
        self.parameter = parameter


class ScanRootError(DRAnalyzerError):
    """Raised when the scan root is missing or is not a directory."""

    def __init__(self, message: str, root: str = None, details: str = None):
        super().__init__(message, details)
        self.root = root


class LogReadError(DRAnalyzerError):
    """Raised when a candidate file cannot be read."""

    def __init__(self, message: str, file_path: str = None, details: str = None):
        super().__init__(message, details)
        self.file_path = file_path


class FileTooLargeError(LogReadError):
    """Raised when a candidate file exceeds the configured size cap."""

    def __init__(
        self,
        message: str,
        file_path: str = None,
        size_bytes: int = None,
        limit_bytes: int = None,
    ):
        super().__init__(
            message, file_path=file_path, details=f"{size_bytes} > {limit_bytes} bytes"
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class LogDecodeError(DRAnalyzerError):
    """Raised when log bytes cannot be decoded with any supported encoding."""

    def __init__(self, message: str, encodings: tuple = (), details: str = None):
        super().__init__(message, details)
        self.encodings = encodings


class ActionError(DRAnalyzerError):
    """Raised when a filesystem action cannot be carried out."""

    def __init__(
        self,
        message: str,
        file_path: str = None,
        operation: str = None,
        details: str = None,
    ):
        super().__init__(message, details)
        self.file_path = file_path
        self.operation = operation


class ConfirmationRequiredError(ActionError):
    """Raised when a destructive plan is executed without confirmation."""
