"""Users, Google sign-in and the access tokens the API issues."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt

from nerdover.stores import DocumentStore

USER_COLLECTION = "user"
TOKEN_LIFETIME = timedelta(hours=24)
SIGNING_ALGORITHM = "HS256"

_GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
_GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})
_ACCEPTED_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


@dataclass(frozen=True)
class User:
    email: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(email=data.get("email", ""), name=data.get("name", ""))


class AuthError(Exception):
    """Authentication failed."""


class GoogleTokenVerifier:
    """Validate Google ID tokens and return their claims."""

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        self._jwks = jwt.PyJWKClient(_GOOGLE_CERTS_URL)

    def __call__(self, id_token: str) -> dict[str, Any]:
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(id_token)
            claims = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                audience=self.client_id or None,
                options={"verify_aud": bool(self.client_id), "require": ["exp"]},
            )
        except jwt.PyJWTError as exc:
            raise AuthError(str(exc)) from exc
        if claims.get("iss") not in _GOOGLE_ISSUERS:
            raise AuthError("idtoken: token has wrong issuer")
        return claims


class AuthService:
    """Exchange Google ID tokens for signed access tokens and check them."""

    def __init__(
        self,
        store: DocumentStore,
        secret: str | bytes,
        verifier: Callable[[str], dict[str, Any]],
    ) -> None:
        self.store = store
        self.secret = secret
        self.verifier = verifier

    def find_by_email(self, email: str) -> User:
        doc = next(self.store.where(USER_COLLECTION, "email", email), None)
        if doc is None:
            raise AuthError("user not found")
        return User.from_dict(doc)

    def issue_token(self, user: User) -> str:
        claims = {
            "email": user.email,
            "name": user.name,
            "exp": datetime.now(timezone.utc) + TOKEN_LIFETIME,
        }
        return jwt.encode(claims, self.secret, algorithm=SIGNING_ALGORITHM)

    def login_with_google(self, id_token: str) -> str:
        """Verify a Google ID token and return an access token for its user."""
        claims = self.verifier(id_token)
        email = claims.get("email")
        if not isinstance(email, str):
            raise AuthError("token has no email claim")
        return self.issue_token(self.find_by_email(email))

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """Return the claims of a valid access token, or raise ``AuthError``."""
        try:
            return jwt.decode(token, self.secret, algorithms=_ACCEPTED_HMAC_ALGORITHMS)
        except jwt.PyJWTError as exc:
            raise AuthError(str(exc)) from exc