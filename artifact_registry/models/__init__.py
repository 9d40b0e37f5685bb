"""SQLAlchemy models."""

from artifact_registry.models.package import Package
from artifact_registry.models.user import User

__all__ = [
    "User",
    "Package",
]
