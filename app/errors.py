"""
Error taxonomy shared by the scoring engine and the campaign scheduler.

Every error carries the operation that raised it and whether retrying
the same call could succeed, mirroring the job/repository errors used
throughout the service.
"""


class CrmCoreError(Exception):
    """Base class for all service errors."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = False):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ConfigurationError(CrmCoreError):
    """Scoring configuration is invalid (weights, tiers, brackets)."""


class ValidationError(CrmCoreError):
    """Caller supplied invalid input, e.g. a schedule time in the past."""


class NotFoundError(CrmCoreError):
    """Referenced contact or campaign does not exist for the tenant."""


class DelegateError(CrmCoreError):
    """External send delegate failed or timed out."""

    def __init__(self, message: str, operation: str = "send", recoverable: bool = True):
        super().__init__(message, operation=operation, recoverable=recoverable)


class StorageError(CrmCoreError):
    """A persistence operation failed."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message, operation=operation, recoverable=recoverable)
