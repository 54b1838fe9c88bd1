from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from comex.errors import AuthError

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

# Identity Toolkit error codes -> login form messages.
ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "There is no user record corresponding to this email.",
    "INVALID_PASSWORD": "The password is invalid.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "USER_DISABLED": "This user account has been disabled.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "MISSING_PASSWORD": "Please enter a password.",
}


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    display_name: Optional[str]
    id_token: str
    refresh_token: Optional[str] = None


Listener = Callable[[Optional[AuthUser]], None]


def _error_message(resp: requests.Response) -> str:
    try:
        code = resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"Sign-in failed ({resp.status_code})."
    code = str(code).split(":")[0].strip()
    return ERROR_MESSAGES.get(code, code.replace("_", " ").capitalize())


class AuthClient:
    """Email/password sign-in against Firebase Authentication.

    Listeners registered with ``on_change`` are called with the new user (or
    ``None``) whenever the signed-in state changes.
    """

    def __init__(self, api_key: Optional[str], store=None, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.store = store
        self.session = session or requests.Session()
        self.current_user: Optional[AuthUser] = None
        self._listeners: List[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def on_change(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self.current_user)

    def sign_in(self, email: str, password: str) -> AuthUser:
        if not self.api_key:
            raise AuthError("Sign-in is not configured (FIREBASE_API_KEY is missing).")
        try:
            resp = self.session.post(
                SIGN_IN_URL,
                params={"key": self.api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except requests.RequestException as exc:
            logger.exception("Sign-in request failed")
            raise AuthError("Could not reach the authentication service.") from exc
        if not resp.ok:
            message = _error_message(resp)
            logger.warning("Sign-in rejected for %s: %s", email, message)
            raise AuthError(message)

        data: Dict[str, Any] = resp.json()
        self.current_user = AuthUser(
            uid=data["localId"],
            email=data.get("email") or email,
            display_name=data.get("displayName") or None,
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
        )
        logger.info("Signed in %s", self.current_user.email)
        self._notify()
        return self.current_user

    def sign_out(self) -> None:
        if self.current_user is None:
            return
        logger.info("Signed out %s", self.current_user.email)
        self.current_user = None
        self._notify()

    def profile(self) -> Dict[str, Any]:
        if self.current_user is None:
            raise AuthError("No user is signed in.")
        user = self.current_user
        return self.store.get_user_profile(user.uid, name=user.display_name, email=user.email)
