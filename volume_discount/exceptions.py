"""
Custom exceptions for the Volume Discount engine
"""

from typing import List, Optional


class DiscountEngineError(Exception):
    """Base exception for all discount engine errors"""
    pass


class ValidationError(DiscountEngineError):
    """Raised when an admin-submitted discount fails validation"""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors))


class MissingDiscountIdError(DiscountEngineError):
    """Raised when a discount was created but no identifier came back"""
    pass


class ConfigurationError(DiscountEngineError):
    """Raised when engine configuration is invalid"""
    pass
