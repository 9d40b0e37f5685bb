"""
Error taxonomy for the registry.

Services raise these; the API routers decide how much of the distinction
reaches the wire. Wrapped library errors are always chained with ``from``.
"""

from enum import StrEnum
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class RegistryError(Exception):
    """Base exception for all registry errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RegistryError):
    """Field-level input validation failed."""

    def __init__(self, errors: dict[str, list[str]], message: str = "Validation failed"):
        super().__init__(message, code="VALIDATION_ERROR", details={"errors": errors})
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Build a field -> messages mapping out of a pydantic error."""
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "__root__"
            errors.setdefault(field, []).append(error["msg"])
        return cls(errors)


class UniquenessError(RegistryError):
    """A unique field collides with an existing row."""

    def __init__(self, field: str, value: str):
        super().__init__(
            f"{field} '{value}' has already been taken",
            code="UNIQUENESS_ERROR",
            details={"field": field, "value": value},
        )
        self.field = field
        self.value = value


class NotFoundError(RegistryError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found: {identifier}",
            code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


class ExtractionError(RegistryError):
    """The artifact archive could not be read or lacks a manifest."""

    def __init__(self, message: str):
        super().__init__(message, code="EXTRACTION_ERROR")


class ManifestParseError(RegistryError):
    """The manifest was found but could not be decoded."""

    def __init__(self, message: str):
        super().__init__(message, code="MANIFEST_PARSE_ERROR")


class StorageError(RegistryError):
    """An object-store call failed or did not report success."""

    def __init__(self, message: str, operation: str, bucket: str, key: str):
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"operation": operation, "bucket": bucket, "key": key},
        )
        self.operation = operation
        self.bucket = bucket
        self.key = key


class TokenInvalidReason(StrEnum):
    """Why a bearer token was rejected."""

    EXPIRED = "expired"
    MALFORMED = "malformed"
    SIGNATURE = "signature"
    CLAIMS = "claims"


class TokenInvalidError(RegistryError):
    """A bearer token failed validation."""

    def __init__(self, reason: TokenInvalidReason, message: str = "Invalid authentication token"):
        super().__init__(message, code="TOKEN_INVALID", details={"reason": str(reason)})
        self.reason = reason


class AuthenticationError(RegistryError):
    """Login failed. Deliberately does not say whether the user exists."""

    def __init__(self, message: str = "Incorrect credentials"):
        super().__init__(message, code="AUTHENTICATION_ERROR")
