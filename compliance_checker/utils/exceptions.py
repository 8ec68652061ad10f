"""Custom exception classes for the compliance check pipeline."""


class ComplianceCheckError(Exception):
    """Base exception for all compliance checker errors."""

    pass


class ConfigurationError(ComplianceCheckError):
    """Raised when an embedding or completion provider is not configured."""

    pass


class ProviderError(ComplianceCheckError):
    """Raised when an embedding or completion call times out or fails."""

    pass


class RunSetupError(ComplianceCheckError):
    """Raised when a check run cannot be set up, e.g. it has no checklist items."""

    pass


class CancellationError(ComplianceCheckError):
    """Raised when a check run is stopped before all items were processed."""

    def __init__(self, message: str = "Job was cancelled"):
        super().__init__(message)


class EvidenceValidationError(ComplianceCheckError):
    """Raised when an evidence quote cannot be found in the source chunks."""

    pass


class DimensionMismatchError(ComplianceCheckError, ValueError):
    """Raised when two vectors of different length are compared."""

    pass


class DocumentNotFoundError(ComplianceCheckError):
    """Raised when a document id is unknown to the document store."""

    pass


class DocumentNotProcessedError(ComplianceCheckError):
    """Raised when a check is requested for a document that has no chunks yet."""

    pass


class RunNotFoundError(ComplianceCheckError):
    """Raised when a check run id is unknown to the result store."""

    pass


class InvalidRunStateError(ComplianceCheckError):
    """Raised when a check run cannot make the requested status transition."""

    pass
