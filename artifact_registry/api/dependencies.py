"""FastAPI dependencies for authentication, database and services."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from artifact_registry.config import Settings, get_settings
from artifact_registry.database import get_db
from artifact_registry.exceptions import NotFoundError, TokenInvalidError
from artifact_registry.models.user import User
from artifact_registry.services.accounts import CredentialStore
from artifact_registry.services.manifest import ManifestExtractor
from artifact_registry.services.object_store import ObjectStore, S3ObjectStore
from artifact_registry.services.packages import PackageStore
from artifact_registry.services.tokens import TokenIssuer

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@lru_cache
def _s3_object_store() -> S3ObjectStore:
    return S3ObjectStore(get_settings())


def get_object_store() -> ObjectStore:
    """Get the process-wide object store client."""
    return _s3_object_store()


def get_token_issuer(settings: Annotated[Settings, Depends(get_settings)]) -> TokenIssuer:
    """Get token issuer bound to the configured signing key."""
    return TokenIssuer(settings)


def get_credential_store(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CredentialStore:
    """Get credential store with dependencies."""
    return CredentialStore(db, settings)


def get_manifest_extractor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ManifestExtractor:
    """Get manifest extractor for the configured manifest file name."""
    return ManifestExtractor(
        settings.manifest_filename, max_manifest_bytes=settings.max_manifest_bytes
    )


def get_package_store(
    db: Annotated[Session, Depends(get_db)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PackageStore:
    """Get package store with dependencies."""
    return PackageStore(db, object_store, settings)


def _user_from_token(token: str, tokens: TokenIssuer, credentials: CredentialStore) -> User:
    try:
        claims = tokens.validate(token)
    except TokenInvalidError as e:
        raise _unauthorized() from e

    try:
        return credentials.get_user(claims.user_id)
    except NotFoundError as e:
        raise _unauthorized("User not found") from e


def get_current_user(
    bearer: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
) -> User:
    """Get the current authenticated user from JWT token."""
    return _user_from_token(bearer.credentials, tokens, credentials)


def get_optional_user(
    bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
) -> User | None:
    """Get the user if a bearer token was sent. A bad token is still rejected."""
    if bearer is None:
        return None
    return _user_from_token(bearer.credentials, tokens, credentials)
