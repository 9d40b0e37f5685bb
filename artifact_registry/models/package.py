"""Package model."""

from sqlalchemy import JSON, Column, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from artifact_registry.database import Base
from artifact_registry.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Package(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Metadata for a published artifact.

    A row only exists while its artifact is stored at
    ``object_store_bucket``/``object_store_key``.
    """

    __tablename__ = "packages"

    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    homepage = Column(String(2048), nullable=False)
    repository_url = Column(String(2048), nullable=False)
    keywords = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    owner_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    object_store_bucket = Column(String(255), nullable=False)
    object_store_key = Column(String(1024), nullable=False)

    # Relationships
    owner = relationship("User", backref="packages")
