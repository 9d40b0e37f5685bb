"""Credential store: user accounts and password hashing."""

import logging
from collections.abc import Mapping
from typing import Any

from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from artifact_registry.config import Settings
from artifact_registry.exceptions import NotFoundError, UniquenessError, ValidationError
from artifact_registry.models.user import User
from artifact_registry.schemas.auth import UserRegister, UserUpdate

logger = logging.getLogger(__name__)


def build_password_context(rounds: int) -> CryptContext:
    """Password hashing context (bcrypt, salted)."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


class CredentialStore:
    """Creates and looks up users and checks their passwords."""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.pwd_context = build_password_context(settings.password_hash_rounds)

    def hash_password(self, password: str) -> str:
        """Hash a password."""
        return self.pwd_context.hash(password)

    def verify_password(self, user: User, candidate: str) -> bool:
        """Check a candidate password against the user's stored hash.

        A mismatch returns False; only a broken stored hash raises.
        """
        return self.pwd_context.verify(candidate, user.password_hash)

    def dummy_verify(self) -> bool:
        """Spend the cost of one password check without a user. Always False."""
        return self.pwd_context.dummy_verify()

    def create_user(self, attrs: Mapping[str, Any]) -> User:
        """Validate, hash and persist a new user.

        Raises:
            ValidationError: a field is missing or malformed
            UniquenessError: the login e-mail is already registered
        """
        try:
            data = UserRegister.model_validate(dict(attrs))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        identifier = data.private_email.lower()
        if self._find_by_identifier(identifier) is not None:
            raise UniquenessError("private_email", identifier)

        user = User(
            full_name=data.full_name,
            public_email=data.public_email,
            private_email=identifier,
            password_hash=self.hash_password(data.password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            self.db.rollback()
            raise UniquenessError("private_email", identifier) from e

        self.db.refresh(user)
        logger.info(f"Created user {user.id}")
        return user

    def update_user(self, user: User, attrs: Mapping[str, Any]) -> User:
        """Apply a partial update to a user.

        A changed e-mail address loses its verified flag. A new password needs
        a matching confirmation.

        Raises:
            ValidationError: a field is malformed
            UniquenessError: the new login e-mail belongs to another user
        """
        try:
            data = UserUpdate.model_validate(dict(attrs))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        changes = data.model_dump(
            exclude_unset=True,
            exclude_none=True,
            exclude={"password", "password_confirmation"},
        )

        if data.password is not None and data.password_confirmation != data.password:
            raise ValidationError({"password_confirmation": ["does not match password"]})

        if "private_email" in changes:
            identifier = changes["private_email"].lower()
            existing = self._find_by_identifier(identifier)
            if existing is not None and existing.id != user.id:
                raise UniquenessError("private_email", identifier)
            changes["private_email"] = identifier
            if identifier != user.private_email:
                user.is_private_email_verified = False

        if changes.get("public_email", user.public_email) != user.public_email:
            user.is_public_email_verified = False

        for field, value in changes.items():
            setattr(user, field, value)
        if data.password is not None:
            user.password_hash = self.hash_password(data.password)

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise UniquenessError("private_email", changes.get("private_email", "")) from e

        self.db.refresh(user)
        logger.info(f"Updated user {user.id}")
        return user

    def delete_user(self, user: User) -> None:
        """Delete a user. Their packages stay, without an owner."""
        user_id = user.id
        self.db.delete(user)
        self.db.commit()
        logger.info(f"Deleted user {user_id}")

    def get_by_identifier(self, identifier: str) -> User:
        """Get the user whose login e-mail matches, case-insensitively."""
        user = self._find_by_identifier(identifier.lower())
        if user is None:
            raise NotFoundError("User", identifier)
        return user

    def get_user(self, user_id: str) -> User:
        """Get a user by id."""
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def list_users(self) -> list[User]:
        """List all users, oldest first."""
        return self.db.query(User).order_by(User.created_at, User.id).all()

    def _find_by_identifier(self, identifier: str) -> User | None:
        return (
            self.db.query(User).filter(func.lower(User.private_email) == identifier).one_or_none()
        )
