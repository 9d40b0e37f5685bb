"""Pydantic schemas for API requests and responses."""

from artifact_registry.schemas.auth import (
    LoginRequest,
    LoginResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from artifact_registry.schemas.package import PackageDescriptor, PackageResponse, PublishResponse

__all__ = [
    "UserRegister",
    "LoginRequest",
    "LoginResponse",
    "UserResponse",
    "UserUpdate",
    "PackageDescriptor",
    "PackageResponse",
    "PublishResponse",
]
