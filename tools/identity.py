"""Identity providers supplying the signed-in user and bearer credentials."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
from urllib.parse import quote

from supabase import create_client

from models.errors import Unauthorized

LOGGER = logging.getLogger(__name__)

AVATAR_URL_TEMPLATE = "https://api.dicebear.com/8.x/avataaars-neutral/svg?seed={seed}"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


AuthListener = Callable[[Optional[AuthUser]], None]

_UNANNOUNCED = object()


class IdentityProvider(ABC):
    """Abstract identity provider.

    Listeners registered with :meth:`subscribe` are called with the new user on
    sign-in and with ``None`` on sign-out.
    """

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user: Optional[AuthUser]) -> None:
        for listener in list(self._listeners):
            listener(user)

    @abstractmethod
    def current_user(self) -> Optional[AuthUser]:
        """Return the signed-in user, if any."""

    @abstractmethod
    def get_access_token(self) -> Optional[str]:
        """Return a fresh bearer credential for the active session."""

    @abstractmethod
    def verify_token(self, token: str) -> Optional[AuthUser]:
        """Resolve a bearer credential to its user, or ``None`` if invalid."""


class StaticIdentityProvider(IdentityProvider):
    """In-memory provider for local runs and tests."""

    def __init__(self, user: AuthUser | None = None, token: str | None = None) -> None:
        super().__init__()
        self._user = user
        self._token = token

    def sign_in(self, user: AuthUser, token: str) -> AuthUser:
        self._user = user
        self._token = token
        self._notify(user)
        return user

    def sign_out(self) -> None:
        self._user = None
        self._token = None
        self._notify(None)

    def expire_token(self) -> None:
        self._token = None

    def current_user(self) -> Optional[AuthUser]:
        return self._user

    def get_access_token(self) -> Optional[str]:
        return self._token

    def verify_token(self, token: str) -> Optional[AuthUser]:
        if self._token and token == self._token:
            return self._user
        return None


def _to_auth_user(raw: Any) -> Optional[AuthUser]:
    if raw is None:
        return None
    metadata = getattr(raw, "user_metadata", None) or {}
    return AuthUser(
        id=str(raw.id),
        email=getattr(raw, "email", None),
        display_name=metadata.get("display_name"),
        avatar_url=metadata.get("avatar_url"),
    )


class SupabaseIdentityProvider(IdentityProvider):
    """Supabase Auth backed provider.

    Listeners hear about explicit sign-in and sign-out as well as changes the
    auth client reports on its own, such as a session that could not be
    refreshed. Each user change is announced once.
    """

    SIGNED_OUT_EVENTS = frozenset({"SIGNED_OUT", "USER_DELETED"})

    def __init__(self, client: Any = None, url: str | None = None, key: str | None = None) -> None:
        super().__init__()
        if client is None:
            if not url or not key:
                raise ValueError("supabase url and key are required")
            client = create_client(url, key)
        self.client = client
        self._announced: Any = _UNANNOUNCED
        self._auth_subscription = None
        if hasattr(client.auth, "on_auth_state_change"):
            self._auth_subscription = client.auth.on_auth_state_change(self._on_auth_state_change)

    def _announce(self, user: Optional[AuthUser]) -> None:
        key = user.id if user else None
        if key == self._announced:
            return
        self._announced = key
        self._notify(user)

    def _on_auth_state_change(self, event: Any, session: Any) -> None:
        name = str(getattr(event, "value", event))
        if name in self.SIGNED_OUT_EVENTS or session is None:
            LOGGER.info("Auth session ended", extra={"auth_event": name})
            self._announce(None)
            return
        self._announce(_to_auth_user(getattr(session, "user", None)))

    def sign_in_with_email(self, email: str, password: str) -> AuthUser:
        response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        user = _to_auth_user(response.user)
        if user is None:
            raise Unauthorized("sign-in did not return a user")
        LOGGER.info("User signed in", extra={"user_id": user.id})
        self._announce(user)
        return user

    def sign_in_with_google(self, redirect_to: str | None = None) -> str:
        """Start Google OAuth and return the URL the user must visit.

        The session arrives through the auth client's state change, or through
        :meth:`complete_oauth_sign_in` when the caller receives the code.
        """

        credentials: dict = {"provider": "google"}
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        response = self.client.auth.sign_in_with_oauth(credentials)
        return response.url

    def complete_oauth_sign_in(self, auth_code: str) -> AuthUser:
        response = self.client.auth.exchange_code_for_session({"auth_code": auth_code})
        user = _to_auth_user(response.user)
        if user is None:
            raise Unauthorized("OAuth code exchange did not return a user")
        self._announce(user)
        return user

    def sign_up_with_email(self, email: str, password: str, display_name: str) -> Optional[AuthUser]:
        avatar_url = AVATAR_URL_TEMPLATE.format(seed=quote(email, safe=""))
        response = self.client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"display_name": display_name, "avatar_url": avatar_url}},
            }
        )
        # Users stay signed out until they confirm their email.
        return _to_auth_user(response.user)

    def sign_out(self) -> None:
        self.client.auth.sign_out()
        self._announce(None)

    def close(self) -> None:
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None

    def current_user(self) -> Optional[AuthUser]:
        session = self.client.auth.get_session()
        if session is None:
            return None
        return _to_auth_user(session.user)

    def get_access_token(self) -> Optional[str]:
        session = self.client.auth.get_session()
        return session.access_token if session else None

    def verify_token(self, token: str) -> Optional[AuthUser]:
        try:
            response = self.client.auth.get_user(token)
        except Exception as exc:
            LOGGER.info("Token verification failed", extra={"error": type(exc).__name__})
            return None
        return _to_auth_user(response.user) if response else None


__all__ = [
    "AuthUser",
    "IdentityProvider",
    "StaticIdentityProvider",
    "SupabaseIdentityProvider",
]
