"""
Error Types
===========
Typed errors raised to callers of the research pipeline.
"""


class QuantResearchError(Exception):
    """Base class for all pipeline errors."""
    pass


class InsufficientDataError(QuantResearchError):
    """Raised when a series is too short for the requested computation."""
    pass


class MissingParameterError(QuantResearchError):
    """Raised when neither a symbol nor an analysis identifier is supplied."""
    pass


class ExternalFetchError(QuantResearchError):
    """Raised when the sole required input could not be fetched."""
    pass


class InvalidParameterError(QuantResearchError, ValueError):
    """Raised for malformed simulation or analysis parameters."""
    pass
