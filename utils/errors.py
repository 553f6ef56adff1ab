"""
Exception types raised by the extraction pipeline.
"""


class ExtractorError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(ExtractorError, ValueError):
    """Raised when a required setting (the Gemini API key) is missing."""


class DocumentLoadError(ExtractorError):
    """Raised when a PDF cannot be opened or rendered."""
