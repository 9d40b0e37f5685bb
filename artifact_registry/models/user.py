"""User model."""

from sqlalchemy import Boolean, Column, String

from artifact_registry.database import Base
from artifact_registry.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A publisher who can log in and own packages."""

    __tablename__ = "users"

    full_name = Column(String(255), nullable=False)
    public_email = Column(String(255), nullable=False)
    # Login identifier, always stored lower-cased
    private_email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    is_public_email_verified = Column(Boolean, nullable=False, default=False)
    is_private_email_verified = Column(Boolean, nullable=False, default=False)
