"""Package schemas."""

from datetime import datetime
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PackageDescriptor(BaseModel):
    """The ``[package]`` table of an artifact manifest."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
    description: str = Field(..., min_length=1)
    homepage: str = Field(..., min_length=1, max_length=2048)
    repository_url: str = Field(..., min_length=1, max_length=2048)
    keywords: list[str]

    @field_validator("repository_url")
    @classmethod
    def absolute_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme:
            raise ValueError("is missing a scheme (e.g. https)")
        if not parts.hostname:
            raise ValueError("is missing a host")
        return value

    @property
    def repository_host(self) -> str:
        return urlsplit(self.repository_url).hostname or ""


class PackageResponse(BaseModel):
    """Package information response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    homepage: str
    repository_url: str
    keywords: list[str]
    owner_user_id: str | None
    object_store_bucket: str
    object_store_key: str
    created_at: datetime


class PublishResponse(BaseModel):
    """Publish result."""

    result: bool
    package: PackageResponse | None = None
