"""
Abstract Authentication Interface

Session issuance, lookup, sign-out and a change-event stream are provided
by the hosted backend. The application only reacts to the events; it
never issues or refreshes tokens itself.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from family_finance.services.storage.interface import BackendError


class AuthEvent(str, Enum):
    """Auth state changes the application reacts to."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthSession(BaseModel):
    """The authenticated identity of the current client."""
    user_id: str
    email: str = ""
    access_token: Optional[str] = None


AuthCallback = Callable[[AuthEvent, Optional[AuthSession]], None]


class AuthInterface(ABC):
    """
    Abstract interface for the authentication provider.
    """

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthSession:
        """
        Register a new user.

        Returns:
            Session of the new user (access_token may be None when the
            provider requires email confirmation first)

        Raises:
            AuthError: If registration is refused
        """
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Email + password sign-in.

        Raises:
            AuthError: On bad credentials
        """
        pass

    @abstractmethod
    async def get_session(self) -> Optional[AuthSession]:
        """Current session, or None when signed out."""
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    async def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """
        Subscribe to auth state changes.

        Returns:
            A function that removes the subscription
        """
        pass


class AuthError(BackendError):
    """The auth provider refused the request."""
    pass
