"""
HOSHIYOMI Exceptions

Error taxonomy shared by the computation core and its adapters.

- InvalidInputError: malformed date, out-of-range or non-finite coordinate,
  unparseable request field. Reported to the caller as a rejected request.
- InternalError: a numeric refinement failed to converge within its
  iteration budget. Reported instead of returning a wrong result.
- ConfigurationError: configuration file or environment is invalid.
"""

from typing import Optional


class HoshiyomiError(Exception):
    """Base class for all hoshiyomi errors."""


class InvalidInputError(HoshiyomiError, ValueError):
    """Raised when a caller supplies input the engine cannot accept."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InternalError(HoshiyomiError):
    """Raised when a computation cannot produce a trustworthy result."""


class ConfigurationError(HoshiyomiError):
    """Raised when configuration cannot be loaded or validated."""
