"""
Nostr Identity Error Model

This module provides the error handling framework for the identity core.
Every failure surfaced by the keystore, the account store and the event codec
is one of the classes below; none of them are retried internally.
"""

from __future__ import annotations
from typing import Optional, Dict, Any
from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes for the identity core."""

    # Success
    OK = 0

    # General errors (1-99)
    UNKNOWN = 1
    INTERNAL = 2

    # Validation errors (100-199)
    INVALID_INPUT = 100
    INVALID_HEX = 101
    INVALID_LENGTH = 102
    INVALID_SECRET_KEY = 103
    INVALID_PUBLIC_KEY = 104
    INVALID_NAME = 105
    INVALID_URL = 106

    # Authentication errors (200-299)
    UNAUTHENTICATED = 200
    BAD_PASSWORD = 201
    KEYSTORE_LOCKED = 202

    # Crypto errors (300-399)
    CRYPTO_ERROR = 300
    CORRUPT_ENVELOPE = 301
    MALFORMED_KEY_DATA = 302
    SIGNING_FAILED = 303

    # Account errors (400-499)
    NOT_FOUND = 400
    DUPLICATE = 401
    INTEGRITY = 402

    # Storage errors (500-599)
    STORAGE_ERROR = 500

    # Relay errors (600-699)
    PROTOCOL_ERROR = 600
    RELAY_ERROR = 601
    RELAY_TIMEOUT = 602


class NostrIdentityError(Exception):
    """
    Base class for all identity core errors.

    Carries a structured code, optional details and the underlying cause.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """
        Initialize an identity core error.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.code.name}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(NostrIdentityError):
    """Malformed hex, wrong byte lengths, empty required fields."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_INPUT,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, code, details, cause)


class AuthenticationError(NostrIdentityError):
    """Wrong or missing password."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNAUTHENTICATED,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, code, details, cause)


class BadPassword(AuthenticationError):
    """Password does not match the keystore verifier."""

    def __init__(self, message: str = "Invalid password",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.BAD_PASSWORD, details, cause)


class LockedError(AuthenticationError):
    """Secret material requested while the keystore is locked."""

    def __init__(self, message: str = "Keystore is locked",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.KEYSTORE_LOCKED, details, cause)


class CryptoError(NostrIdentityError):
    """AEAD failures, malformed envelope fields, signing failures."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CRYPTO_ERROR,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, code, details, cause)


class CorruptEnvelope(CryptoError):
    """Envelope cannot be decrypted or its fields cannot be decoded."""

    def __init__(self, message: str = "Corrupt keystore envelope",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.CORRUPT_ENVELOPE, details, cause)


class MalformedKeyData(CryptoError):
    """Decrypted payload is not a valid key map."""

    def __init__(self, message: str = "Malformed key data",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.MALFORMED_KEY_DATA, details, cause)


class NotFoundError(NostrIdentityError):
    """Unknown account id."""

    def __init__(self, message: str = "Account not found",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.NOT_FOUND, details, cause)


class DuplicateError(NostrIdentityError):
    """An account with the same public key already exists."""

    def __init__(self, message: str = "Account with this public key already exists",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.DUPLICATE, details, cause)


class IntegrityError(NostrIdentityError):
    """Account metadata and keystore contents disagree."""

    def __init__(self, message: str,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INTEGRITY, details, cause)


class StorageError(NostrIdentityError):
    """Durable read or write failure."""

    def __init__(self, message: str,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.STORAGE_ERROR, details, cause)


class ProtocolError(NostrIdentityError):
    """Relay frame is malformed or does not answer the message that was sent."""

    def __init__(self, message: str,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.PROTOCOL_ERROR, details, cause)


class RelayError(NostrIdentityError):
    """Relay connection failures and timeouts."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.RELAY_ERROR,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, code, details, cause)


class ErrorHandler:
    """
    Utility class for categorizing errors.
    """

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        """
        Check if an error is transient from the caller's point of view.

        The core never retries; this only informs a transport or UI that may
        choose to try again.

        Args:
            error: Exception to check

        Returns:
            True if the error may succeed on a later attempt
        """
        return isinstance(error, RelayError)


__all__ = [
    "ErrorCode",
    "NostrIdentityError",
    "ValidationError",
    "AuthenticationError",
    "BadPassword",
    "LockedError",
    "CryptoError",
    "CorruptEnvelope",
    "MalformedKeyData",
    "NotFoundError",
    "DuplicateError",
    "IntegrityError",
    "StorageError",
    "ProtocolError",
    "RelayError",
    "ErrorHandler",
]
