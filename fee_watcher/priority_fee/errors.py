"""Exceptions raised by the priority fee cache."""

from typing import Optional


class PriorityFeeError(Exception):
    """Base class for priority fee errors"""


class ConfigurationError(PriorityFeeError):
    """Raised when a refresh is attempted without the settings it needs"""


class FetchError(PriorityFeeError):
    """Raised when the fee service could not be reached or returned garbage"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
