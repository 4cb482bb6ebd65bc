"""Exceptions for the Aizu SDK."""

from typing import Optional


class AizuError(Exception):
    """Base exception for Aizu SDK errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        if self.error_code:
            parts.append(f"[{self.error_code}]")
        return " ".join(parts)


class ConfigurationError(AizuError):
    """Raised at construction when the configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message)

    def __str__(self):
        return self.message


class ValidationError(AizuError, ValueError):
    """Raised when a tracking call is missing a required argument."""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, error_code="VALIDATION_ERROR")


class DeliveryError(AizuError):
    """Base class for failed delivery attempts."""

    retryable = False


class TransientDeliveryError(DeliveryError):
    """Server error, network failure or timeout. Retried with backoff."""

    retryable = True

    def __init__(self, message: str = "Transient delivery failure", status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, error_code="TRANSIENT")


class TerminalDeliveryError(DeliveryError):
    """Client error or domain/origin rejection. Never retried."""

    def __init__(self, message: str = "Delivery rejected", status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, error_code="TERMINAL")
