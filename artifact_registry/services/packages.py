"""Package store: keeps package rows and artifact blobs consistent.

The relational store can roll back, the object store cannot. Every publish and
delete is therefore run as a ``StorageIntent`` whose state records how far the
two halves got:

    PENDING     row written (or removed) inside an open transaction
    STORED      object-store half applied (blob written, or blob removed)
    COMMITTED   transaction committed, both halves agree
    ROLLED_BACK aborted with both halves back in their original state
    FAILED      aborted with the halves disagreeing (e.g. an orphan blob)

FAILED intents are logged with their bucket and key so a sweep can reconcile
them later.
"""

import logging
import socket
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from artifact_registry.config import Settings
from artifact_registry.exceptions import (
    NotFoundError,
    StorageError,
    UniquenessError,
    ValidationError,
)
from artifact_registry.models.package import Package
from artifact_registry.models.user import User
from artifact_registry.schemas.package import PackageDescriptor
from artifact_registry.services.object_store import ObjectStore, object_key_for

logger = logging.getLogger(__name__)


class IntentOperation(StrEnum):
    """What a storage intent is doing."""

    PUBLISH = "publish"
    DELETE = "delete"


class IntentState(StrEnum):
    """Progress of a storage intent."""

    PENDING = "pending"
    STORED = "stored"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[IntentState, set[IntentState]] = {
    IntentState.PENDING: {IntentState.STORED, IntentState.ROLLED_BACK},
    IntentState.STORED: {IntentState.COMMITTED, IntentState.ROLLED_BACK, IntentState.FAILED},
    IntentState.COMMITTED: set(),
    IntentState.ROLLED_BACK: set(),
    IntentState.FAILED: set(),
}


@dataclass
class StorageIntent:
    """One publish or delete spanning the database and the object store."""

    operation: IntentOperation
    package_name: str
    bucket: str
    key: str
    state: IntentState = IntentState.PENDING
    error: Exception | None = None
    history: list[tuple[IntentState, datetime]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.history.append((self.state, datetime.now(UTC)))

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    def transition(self, new_state: IntentState, error: Exception | None = None) -> None:
        """Move to ``new_state``, refusing transitions the lifecycle does not allow."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal {self.operation} intent transition {self.state} -> {new_state}"
            )
        self.state = new_state
        if error is not None:
            self.error = error
        self.history.append((new_state, datetime.now(UTC)))

        message = f"{self.operation} {self.package_name} ({self.bucket}{self.key}): {new_state}"
        if new_state == IntentState.FAILED:
            logger.error(f"{message}, needs reconciliation: {error}")
        elif new_state == IntentState.ROLLED_BACK:
            logger.warning(f"{message}: {error}")
        else:
            logger.info(message)


class PackageStore:
    """Publishes and deletes packages across the database and object store."""

    def __init__(
        self,
        db: Session,
        object_store: ObjectStore,
        settings: Settings,
        resolve_host: Callable[[str], Any] = socket.gethostbyname,
    ):
        self.db = db
        self.object_store = object_store
        self.bucket = settings.s3_bucket_name
        self.check_repository_host = settings.check_repository_host
        self.resolve_host = resolve_host
        self.intents: list[StorageIntent] = []

    def list_packages(self) -> list[Package]:
        """List all packages by name."""
        return self.db.query(Package).order_by(Package.name).all()

    def get_package(self, package_id: str) -> Package:
        """Get a package by id, raising NotFoundError if absent."""
        package = self.db.get(Package, package_id)
        if package is None:
            raise NotFoundError("Package", package_id)
        return package

    def get_by_name(self, name: str) -> Package:
        """Get a package by its unique name."""
        package = self.db.query(Package).filter(Package.name == name).one_or_none()
        if package is None:
            raise NotFoundError("Package", name)
        return package

    def validate(self, descriptor: Mapping[str, Any]) -> PackageDescriptor:
        """Validate a manifest descriptor before anything is written.

        Raises:
            ValidationError: a field is missing or malformed, or the
                repository host does not resolve
            UniquenessError: the name is already taken
        """
        try:
            data = PackageDescriptor.model_validate(dict(descriptor))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        if self.check_repository_host:
            host = data.repository_host
            try:
                self.resolve_host(host)
            except (OSError, UnicodeError) as e:
                raise ValidationError({"repository_url": [f"invalid host '{host}'"]}) from e

        exists = self.db.query(Package.id).filter(Package.name == data.name).first()
        if exists is not None:
            raise UniquenessError("name", data.name)

        return data

    def publish(
        self,
        descriptor: Mapping[str, Any],
        artifact: bytes,
        owner: User | None = None,
    ) -> Package:
        """Store the package row and its artifact as one logical operation.

        The row is inserted inside an open transaction, the artifact is put to
        the object store, and only then is the transaction committed. If the
        put fails the row is rolled back, so no row ever points at a missing
        artifact.

        Raises:
            ValidationError, UniquenessError: before any object-store call
            StorageError: the artifact could not be stored
        """
        data = self.validate(descriptor)
        key = object_key_for(data.name)
        intent = StorageIntent(IntentOperation.PUBLISH, data.name, self.bucket, key)
        self.intents.append(intent)

        package = Package(
            name=data.name,
            description=data.description,
            homepage=data.homepage,
            repository_url=data.repository_url,
            keywords=list(data.keywords),
            owner_user_id=owner.id if owner is not None else None,
            object_store_bucket=self.bucket,
            object_store_key=key,
        )
        self.db.add(package)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            intent.transition(IntentState.ROLLED_BACK, e)
            raise UniquenessError("name", data.name) from e

        try:
            self.object_store.put(self.bucket, key, artifact)
        except StorageError as e:
            self.db.rollback()
            intent.transition(IntentState.ROLLED_BACK, e)
            raise
        intent.transition(IntentState.STORED)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self._discard_stored_artifact(intent, e)
            if isinstance(e, IntegrityError):
                raise UniquenessError("name", data.name) from e
            raise
        intent.transition(IntentState.COMMITTED)

        self.db.refresh(package)
        return package

    def delete(self, package: Package) -> None:
        """Delete the package row and its artifact.

        If the artifact cannot be deleted the row deletion is rolled back and
        the package stays fully intact.

        Raises:
            StorageError: the artifact could not be deleted
        """
        name, bucket, key = package.name, package.object_store_bucket, package.object_store_key
        intent = StorageIntent(IntentOperation.DELETE, name, bucket, key)
        self.intents.append(intent)

        self.db.delete(package)
        self.db.flush()

        try:
            self.object_store.delete(bucket, key)
        except StorageError as e:
            self.db.rollback()
            intent.transition(IntentState.ROLLED_BACK, e)
            raise
        intent.transition(IntentState.STORED)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            # The artifact is gone but the row survives
            self.db.rollback()
            intent.transition(IntentState.FAILED, e)
            raise
        intent.transition(IntentState.COMMITTED)

    def _discard_stored_artifact(self, intent: StorageIntent, cause: Exception) -> None:
        """Compensate a failed commit by deleting the artifact that was just stored."""
        try:
            self.object_store.delete(intent.bucket, intent.key)
        except StorageError as e:
            intent.transition(IntentState.FAILED, e)
            return
        intent.transition(IntentState.ROLLED_BACK, cause)
