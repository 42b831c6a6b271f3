"""In-process auth provider for tests and offline runs."""

from typing import Callable, Optional
from uuid import uuid4

from family_finance.services.auth.interface import (
    AuthCallback,
    AuthError,
    AuthEvent,
    AuthInterface,
    AuthSession,
)


class InMemoryAuth(AuthInterface):
    """
    Keeps registered users in a dict and emits auth events synchronously
    to subscribers, in registration order.
    """

    def __init__(self):
        self._users: dict[str, tuple[str, str]] = {}  # email -> (user_id, password)
        self._session: Optional[AuthSession] = None
        self._listeners: list[AuthCallback] = []

    def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self._session)

    def _new_session(self, user_id: str, email: str) -> AuthSession:
        return AuthSession(user_id=user_id, email=email, access_token=uuid4().hex)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        if email in self._users:
            raise AuthError("User already registered")
        if len(password) < 6:
            raise AuthError("Password should be at least 6 characters")
        user_id = str(uuid4())
        self._users[email] = (user_id, password)
        self._session = self._new_session(user_id, email)
        self._emit(AuthEvent.SIGNED_IN)
        return self._session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        stored = self._users.get(email)
        if stored is None or stored[1] != password:
            raise AuthError("Invalid login credentials")
        self._session = self._new_session(stored[0], email)
        self._emit(AuthEvent.SIGNED_IN)
        return self._session

    async def get_session(self) -> Optional[AuthSession]:
        return self._session

    async def sign_out(self) -> None:
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT)

    async def refresh(self) -> None:
        """Rotate the access token of the current session."""
        if self._session is None:
            raise AuthError("No session to refresh")
        self._session = self._new_session(self._session.user_id, self._session.email)
        self._emit(AuthEvent.TOKEN_REFRESHED)

    async def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe
