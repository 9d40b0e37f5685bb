"""Password login."""

import logging

from artifact_registry.exceptions import AuthenticationError, NotFoundError
from artifact_registry.services.accounts import CredentialStore
from artifact_registry.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)


def authenticate(
    credentials: CredentialStore,
    tokens: TokenIssuer,
    identifier: str,
    password: str,
) -> str:
    """Log a user in and return a bearer token.

    An unknown identifier and a wrong password raise the same
    AuthenticationError after the same hashing work, so neither the error
    nor the response time tells callers which users exist.
    """
    try:
        user = credentials.get_by_identifier(identifier)
    except NotFoundError as e:
        credentials.dummy_verify()
        logger.info("Login failed: unknown identifier")
        raise AuthenticationError() from e

    if not credentials.verify_password(user, password):
        logger.info(f"Login failed: wrong password for user {user.id}")
        raise AuthenticationError()

    return tokens.issue(user)
