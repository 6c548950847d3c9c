"""
Identity token verification.

The identity provider signs bearer tokens; this module only checks them and
extracts the caller's verified email. Nothing is cached between calls.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
from jose import JWTError, jwt
from parcel_backend.app.core.config import settings


class IdentityVerificationError(Exception):
    """Raised when the verifier rejects a bearer token."""


class JWTIdentityVerifier:
    """
    Verifies identity-provider JWTs.

    A token is accepted when its signature, expiry and (if configured)
    audience and issuer are valid and it carries an ``email`` claim.
    """

    def __init__(
        self,
        secret_key: str,
        algorithms: List[str],
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.secret_key = secret_key
        self.algorithms = algorithms
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a bearer token.

        Args:
            token: Raw bearer token string

        Returns:
            Decoded claims (always includes ``email``)

        Raises:
            IdentityVerificationError: if the token is rejected
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as exc:
            raise IdentityVerificationError(str(exc)) from exc

        email = claims.get("email")
        if not email:
            raise IdentityVerificationError("Token has no email claim")

        return claims


def build_identity_verifier() -> JWTIdentityVerifier:
    """Build the verifier from application settings."""
    return JWTIdentityVerifier(
        secret_key=settings.identity_secret_key,
        algorithms=[settings.identity_algorithm],
        audience=settings.identity_audience,
        issuer=settings.identity_issuer,
    )


def create_identity_token(
    email: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
    secret_key: Optional[str] = None,
) -> str:
    """
    Mint an identity token signed with the configured key.

    Used by development tooling and tests; production tokens come from the
    identity provider.

    Example payload:
        {
            "sub": "rider@example.com",
            "email": "rider@example.com",
            "exp": 1234567890
        }
    """
    to_encode = {"sub": email, "email": email}
    if extra_claims:
        to_encode.update(extra_claims)

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.identity_token_expire_minutes)

    to_encode["exp"] = expire
    if settings.identity_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.identity_audience
    if settings.identity_issuer and "iss" not in to_encode:
        to_encode["iss"] = settings.identity_issuer

    return jwt.encode(
        to_encode,
        secret_key or settings.identity_secret_key,
        algorithm=settings.identity_algorithm,
    )
