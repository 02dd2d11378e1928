"""
Authentication and role gating.

``get_token_email`` turns the bearer token into a verified email using the
``IdentityVerifier`` on ``app.state.verifier``. ``require_role`` builds the
per-route gate: one user lookup per request, so role changes apply on the
caller's next request.
"""
import base64
import json
import logging
import threading
from enum import Enum
from typing import Any, Dict, Optional

import firebase_admin
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError
from pymongo.database import Database

from database import USERS, get_db

logger = logging.getLogger(__name__)

UNAUTHORIZED = "Unauthorized Access!"

bearer = HTTPBearer(auto_error=False)


class Role(str, Enum):
    BORROWER = "borrower"
    MANAGER = "manager"
    ADMIN = "admin"


class InvalidCredential(Exception):
    pass


class VerifierConfigError(Exception):
    """The identity provider cannot be set up; a server fault, not a bad token."""


class IdentityVerifier:
    """Turns a bearer token into the email it was issued for."""

    def verify(self, token: str) -> str:
        raise NotImplementedError


class FirebaseVerifier(IdentityVerifier):
    """Verifies Firebase ID tokens.

    ``service_key`` is the base64-encoded service account JSON. The Firebase
    app is created on the first verification so importing the API never
    needs credentials.
    """

    APP_NAME = "loan-marketplace"

    def __init__(self, service_key: str):
        self._service_key = service_key
        self._app = None
        self._lock = threading.Lock()

    def _get_app(self):
        with self._lock:
            if self._app is None:
                if not self._service_key:
                    raise VerifierConfigError("FB_SERVICE_KEY is not configured")
                try:
                    info = json.loads(base64.b64decode(self._service_key).decode("utf-8"))
                    cert = credentials.Certificate(info)
                except ValueError as e:
                    raise VerifierConfigError(f"FB_SERVICE_KEY is not a valid service account: {e}") from e
                try:
                    self._app = firebase_admin.get_app(self.APP_NAME)
                except ValueError:
                    self._app = firebase_admin.initialize_app(cert, name=self.APP_NAME)
            return self._app

    def verify(self, token: str) -> str:
        app = self._get_app()
        try:
            decoded = firebase_auth.verify_id_token(token, app=app)
        except (ValueError, FirebaseError) as e:
            raise InvalidCredential(str(e)) from e
        email = decoded.get("email")
        if not email:
            raise InvalidCredential("Token carries no email")
        return email


def get_token_email(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
    verifier: IdentityVerifier = request.app.state.verifier
    try:
        return verifier.verify(creds.credentials)
    except InvalidCredential as e:
        logger.warning("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)


def _forbidden(required: str, user: Optional[Dict[str, Any]]) -> HTTPException:
    actual = user.get("role") if user else None
    return HTTPException(
        status_code=403,
        detail={
            "message": f"{required.capitalize()} only actions!",
            "requiredRole": required,
            "role": actual,
        },
    )


def check_role(db: Database, email: str, *roles: Role) -> Dict[str, Any]:
    """Load the user for ``email`` and raise 403 unless their role is one of ``roles``.

    Returns the user document. Store failures propagate and are reported as
    server errors, never as 403.
    """
    allowed = {r.value for r in roles}
    label = "/".join(r.value for r in roles)
    user = db[USERS].find_one({"email": email})
    if not user or user.get("role") not in allowed:
        logger.warning("Role check failed for %s: needs %s, has %s", email, label, user and user.get("role"))
        raise _forbidden(label, user)
    return user


def require_any_role(*roles: Role):
    """Dependency that admits callers whose stored role is one of ``roles``."""

    def gate(email: str = Depends(get_token_email), db: Database = Depends(get_db)) -> Dict[str, Any]:
        return check_role(db, email, *roles)

    return gate


def require_role(role: Role):
    return require_any_role(role)
