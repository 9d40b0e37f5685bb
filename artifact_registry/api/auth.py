"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from artifact_registry.api.dependencies import (
    get_credential_store,
    get_current_user,
    get_token_issuer,
)
from artifact_registry.exceptions import AuthenticationError, UniquenessError, ValidationError
from artifact_registry.models.user import User
from artifact_registry.schemas.auth import (
    LoginRequest,
    LoginResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from artifact_registry.services.accounts import CredentialStore
from artifact_registry.services.auth import authenticate
from artifact_registry.services.tokens import TokenIssuer

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
):
    """Register a new publisher."""
    try:
        return credentials.create_user(user_data.model_dump())
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.to_dict()
        ) from e
    except UniquenessError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from e


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
):
    """Login with e-mail and password."""
    try:
        token = authenticate(credentials, tokens, request.identifier, request.password)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return LoginResponse(token=token)


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_me(
    user_data: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
):
    """Update the current user's account."""
    try:
        return credentials.update_user(current_user, user_data.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.to_dict()
        ) from e
    except UniquenessError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from e


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    current_user: Annotated[User, Depends(get_current_user)],
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
):
    """Delete the current user's account. Their packages are kept."""
    credentials.delete_user(current_user)
