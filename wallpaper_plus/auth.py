"""
Authentication: ID token verification, account creation and profile bootstrap.

Sign-in itself happens in the browser against Firebase Auth; the API only
verifies the resulting ID tokens and keeps the user profile tree in step.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from wallpaper_plus.errors import AuthenticationError, ValidationError
from wallpaper_plus.records import UserProfile
from wallpaper_plus.users import MIN_PASSWORD_LENGTH, UserOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class AuthClient(Protocol):
    """Interface for the identity provider."""

    def verify_id_token(self, token: str) -> AuthUser:
        ...

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        ...

    def get_user(self, uid: str) -> Optional[AuthUser]:
        ...

    def update_password(self, uid: str, password: str) -> None:
        ...


@dataclass
class InMemoryAuthClient:
    """Test double for Firebase Auth. Tokens are opaque strings from `issue_token`."""

    users: Dict[str, AuthUser] = field(default_factory=dict)
    passwords: Dict[str, str] = field(default_factory=dict)
    tokens: Dict[str, str] = field(default_factory=dict)

    def issue_token(self, uid: str) -> str:
        token = f"test-token-{uuid.uuid4().hex}"
        self.tokens[token] = uid
        return token

    def add_user(self, user: AuthUser, password: str = "password") -> str:
        """Register `user` directly and return a token for it."""
        self.users[user.uid] = user
        self.passwords[user.uid] = password
        return self.issue_token(user.uid)

    def verify_id_token(self, token: str) -> AuthUser:
        uid = self.tokens.get(token)
        if uid is None or uid not in self.users:
            raise AuthenticationError("Invalid ID token")
        return self.users[uid]

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        if any(user.email == email for user in self.users.values()):
            raise ValidationError("Email already in use", {"email": "Email already in use"})
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password is too weak", {"password": "Password is too weak"})
        user = AuthUser(uid=uuid.uuid4().hex[:28], email=email, display_name=display_name)
        self.users[user.uid] = user
        self.passwords[user.uid] = password
        return user

    def get_user(self, uid: str) -> Optional[AuthUser]:
        return self.users.get(uid)

    def update_password(self, uid: str, password: str) -> None:
        if uid not in self.users:
            raise AuthenticationError("Unknown user")
        self.passwords[uid] = password

    def reset(self) -> None:
        self.users.clear()
        self.passwords.clear()
        self.tokens.clear()


class FirebaseAuthClient:
    """Firebase Auth through the firebase-admin SDK."""

    def __init__(self, app=None):
        from firebase_admin import auth as firebase_auth

        self._auth = firebase_auth
        self._app = app

    def _to_user(self, record) -> AuthUser:
        return AuthUser(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            photo_url=record.photo_url,
        )

    def verify_id_token(self, token: str) -> AuthUser:
        try:
            claims = self._auth.verify_id_token(token, app=self._app)
        except (ValueError, self._auth.InvalidIdTokenError, self._auth.CertificateFetchError) as e:
            raise AuthenticationError(f"Invalid ID token: {e}") from e
        return AuthUser(
            uid=claims["uid"],
            email=claims.get("email"),
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
        )

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        try:
            record = self._auth.create_user(
                email=email,
                password=password,
                display_name=display_name or None,
                app=self._app,
            )
        except self._auth.EmailAlreadyExistsError as e:
            raise ValidationError("Email already in use", {"email": "Email already in use"}) from e
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return self._to_user(record)

    def get_user(self, uid: str) -> Optional[AuthUser]:
        try:
            return self._to_user(self._auth.get_user(uid, app=self._app))
        except self._auth.UserNotFoundError:
            return None

    def update_password(self, uid: str, password: str) -> None:
        try:
            self._auth.update_user(uid, password=password, app=self._app)
        except ValueError as e:
            raise ValidationError("Password is too weak", {"newPassword": str(e)}) from e


class AccountService:
    """Keeps `users/{uid}` profiles in step with auth accounts."""

    def __init__(self, auth_client: AuthClient, users: UserOperations):
        self.auth_client = auth_client
        self.users = users

    def signup(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        user = self.auth_client.create_user(email, password, display_name)
        profile = UserProfile.from_display_name(display_name, user.email or email, user.photo_url)
        try:
            self.users.create_user(user.uid, profile.as_tree())
        except Exception:
            # The account exists even if the profile write failed.
            logger.warning(
                "Database profile creation failed for %s, but authentication succeeded",
                user.uid,
                exc_info=True,
            )
        return user

    def ensure_profile(self, user: AuthUser) -> Optional[dict]:
        """Create the profile on first sign-in with an external provider."""
        try:
            existing = self.users.get_user(user.uid)
            if existing:
                return existing
            profile = UserProfile.from_display_name(user.display_name, user.email, user.photo_url)
            self.users.create_user(user.uid, profile.as_tree())
            return self.users.get_user(user.uid)
        except Exception:
            logger.warning("Database operations failed during sign-in for %s", user.uid, exc_info=True)
            return None
