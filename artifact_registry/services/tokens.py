"""Bearer token issuing and validation."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from artifact_registry.config import Settings
from artifact_registry.exceptions import TokenInvalidError, TokenInvalidReason
from artifact_registry.models.user import User


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claims of a valid token."""

    user_id: str
    issuer: str
    audience: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Issues and validates stateless, signed JWTs.

    There is no revocation list: a token is valid until it expires.
    """

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.issuer = settings.jwt_issuer
        self.audience = settings.jwt_audience
        self.lifetime = timedelta(minutes=settings.jwt_expiration_minutes)

    def issue(self, user: User, now: datetime | None = None) -> str:
        """Create a signed token for the user."""
        issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
        to_encode = {
            "sub": str(user.id),
            "user_id": str(user.id),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            TokenInvalidError: with ``reason`` set to why it was rejected
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except ExpiredSignatureError as e:
            raise TokenInvalidError(TokenInvalidReason.EXPIRED, "Token has expired") from e
        except JWTClaimsError as e:
            raise TokenInvalidError(TokenInvalidReason.CLAIMS, f"Invalid token claims: {e}") from e
        except JWTError as e:
            if self._is_well_formed(token):
                raise TokenInvalidError(
                    TokenInvalidReason.SIGNATURE, "Token signature verification failed"
                ) from e
            raise TokenInvalidError(TokenInvalidReason.MALFORMED, "Token is malformed") from e

        user_id = payload.get("user_id") or payload.get("sub")
        missing = [claim for claim in ("aud", "iat", "exp") if claim not in payload]
        if not user_id:
            missing.insert(0, "user_id")
        if missing:
            raise TokenInvalidError(
                TokenInvalidReason.CLAIMS, f"Token is missing claims: {', '.join(missing)}"
            )

        return TokenClaims(
            user_id=str(user_id),
            issuer=payload["iss"],
            audience=payload["aud"],
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    @staticmethod
    def _is_well_formed(token: str) -> bool:
        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            return False
        return True
