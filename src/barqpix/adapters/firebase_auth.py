"""Firebase ID token verification."""

import base64
import json
from dataclasses import dataclass, field
from typing import Protocol

import firebase_admin
from firebase_admin import auth, credentials

from barqpix.domain.errors import AuthenticationError

_APP_NAME = "barqpix"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity resolved from a verified ID token."""

    uid: str
    email: str | None = None


class IdentityVerifier(Protocol):
    """Interface for verifying bearer tokens."""

    def verify(self, id_token: str) -> AuthenticatedUser:
        """Return the user behind a token or raise AuthenticationError."""


@dataclass
class FirebaseIdentityVerifier(IdentityVerifier):
    """Verifies Firebase ID tokens with the Admin SDK.

    The Admin app is initialized on first use so that building the container
    never needs network access or valid credentials.
    """

    project_id: str
    service_account_base64: str | None = None
    _app: firebase_admin.App | None = field(default=None, init=False, repr=False)

    def verify(self, id_token: str) -> AuthenticatedUser:
        """Verify a Firebase ID token."""
        try:
            decoded = auth.verify_id_token(id_token, app=self._get_app())
        except (
            auth.InvalidIdTokenError,
            auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError,
            auth.CertificateFetchError,
            ValueError,
        ) as exc:
            raise AuthenticationError("Invalid token") from exc
        return AuthenticatedUser(uid=decoded["uid"], email=decoded.get("email"))

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app
        try:
            self._app = firebase_admin.get_app(_APP_NAME)
        except ValueError:
            self._app = firebase_admin.initialize_app(
                self._credential(), {"projectId": self.project_id}, name=_APP_NAME
            )
        return self._app

    def _credential(self) -> credentials.Base:
        if not self.service_account_base64:
            return credentials.ApplicationDefault()
        decoded = base64.b64decode(self.service_account_base64).decode("utf-8")
        return credentials.Certificate(json.loads(decoded))
