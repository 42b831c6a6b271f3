"""
Supabase Auth adapter.

Wraps the async GoTrue client that comes with the supabase client.
Provider errors are re-raised as AuthError with the provider message.
"""

from typing import Any, Callable, Optional

from family_finance.audit import get_logger
from family_finance.services.auth.interface import (
    AuthCallback,
    AuthError,
    AuthEvent,
    AuthInterface,
    AuthSession,
)
from family_finance.services.storage.supabase_store import SupabaseClient


logger = get_logger(__name__)


def _to_session(user: Any, session: Any) -> AuthSession:
    return AuthSession(
        user_id=str(user.id),
        email=getattr(user, "email", None) or "",
        access_token=getattr(session, "access_token", None) if session else None,
    )


class SupabaseAuth(AuthInterface):

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    async def sign_up(self, email: str, password: str) -> AuthSession:
        client = await self._client.connect()
        try:
            response = await client.auth.sign_up({"email": email, "password": password})
        except Exception as e:
            raise AuthError(str(e))
        if response.user is None:
            raise AuthError("Sign-up did not return a user")
        return _to_session(response.user, response.session)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        client = await self._client.connect()
        try:
            response = await client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthError(str(e))
        if response.user is None:
            raise AuthError("Invalid login credentials")
        return _to_session(response.user, response.session)

    async def get_session(self) -> Optional[AuthSession]:
        client = await self._client.connect()
        try:
            session = await client.auth.get_session()
        except Exception as e:
            raise AuthError(str(e))
        if session is None or session.user is None:
            return None
        return _to_session(session.user, session)

    async def sign_out(self) -> None:
        client = await self._client.connect()
        try:
            await client.auth.sign_out()
        except Exception as e:
            raise AuthError(str(e))

    async def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        client = await self._client.connect()

        def relay(event: str, session: Any) -> None:
            try:
                kind = AuthEvent(event)
            except ValueError:
                # INITIAL_SESSION, USER_UPDATED, ... are not acted upon
                logger.debug("auth_event_ignored", auth_event=event)
                return
            mapped = _to_session(session.user, session) if session and session.user else None
            callback(kind, mapped)

        subscription = client.auth.on_auth_state_change(relay)
        return subscription.unsubscribe
