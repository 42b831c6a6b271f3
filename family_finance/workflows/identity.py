"""
Identity: signup, sign-in, sign-out and profile edits.

Signup is three writes against two collaborators (auth user, profile,
default wallet). The auth user cannot be removed from the client side,
so a failed profile insert is reported as such and not undone.

The admin role is assigned at signup according to `admin_role_policy`:

    first_user - only when no profile exists yet (bootstrap admin)
    all_users  - every new profile
    none       - never; admins are promoted out of band

The decision and the inputs it was based on are written to the audit
log as a ROLE_ASSIGNED event.
"""

from typing import Optional

from family_finance.audit import AuditLogger, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.errors import ValidationError
from family_finance.models.audit import AuditEventBuilder
from family_finance.models.entities import AccountDraft, AccountType, Role, User
from family_finance.services.auth.interface import AuthInterface, AuthSession
from family_finance.services.storage.interface import BackendError
from family_finance.services.storage.repositories import Repositories, default_avatar
from family_finance.validation import require_text
from family_finance.workflows.membership import ACCOUNT_COLORS


logger = get_logger(__name__)


def role_for_signup(policy: str, existing_profiles: int) -> Role:
    if policy == "all_users":
        return Role.ADMIN
    if policy == "first_user" and existing_profiles == 0:
        return Role.ADMIN
    return Role.MEMBER


class IdentityService:

    def __init__(
        self,
        repositories: Repositories,
        auth: AuthInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._repos = repositories
        self._auth = auth
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    async def sign_up(self, email: str, password: str, name: str) -> User:
        """
        Register a user, create their profile and a default wallet.

        Returns:
            The stored profile

        Raises:
            ValidationError: missing name, email or password
            AuthError: the auth provider refused the signup
            BackendError: the profile could not be created
        """
        name = require_text(name, "Name")
        email = require_text(email, "Email")
        if not password:
            raise ValidationError("Password is required")

        # Counted before the auth call so the new user's own row cannot interfere
        existing = await self._repos.profiles.count()
        session = await self._auth.sign_up(email, password)

        policy = self._settings.admin_role_policy
        role = role_for_signup(policy, existing)
        user = User(
            id=session.user_id,
            name=name,
            email=email,
            role=role,
            avatar=default_avatar(name),
        )
        try:
            await self._repos.profiles.insert(user)
        except Exception as e:
            logger.error("profile_create_failed", user_id=user.id, error=str(e))
            raise BackendError("Account created but profile setup failed.") from e

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.role_assigned(
                user_id=user.id,
                role=role.value,
                policy=policy,
                existing_profiles=existing,
            ))

        try:
            await self._repos.accounts.insert(AccountDraft(
                owner_id=user.id,
                name=self._settings.default_account_name,
                currency=self._settings.default_currency,
                type=AccountType.PERSONAL,
                color=ACCOUNT_COLORS[AccountType.PERSONAL],
            ))
        except Exception as e:
            # The user can create a wallet later; signup still succeeded
            logger.warning("default_account_failed", user_id=user.id, error=str(e))

        logger.info("user_signed_up", user_id=user.id, role=role.value)
        return user

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Raises:
            ValidationError: missing email or password
            AuthError: bad credentials
        """
        email = require_text(email, "Email")
        if not password:
            raise ValidationError("Password is required")
        session = await self._auth.sign_in(email, password)
        logger.info("user_signed_in", user_id=session.user_id)
        return session

    async def sign_out(self) -> None:
        await self._auth.sign_out()

    async def update_name(self, user: User, name: str) -> User:
        name = require_text(name, "Name")
        await self._repos.profiles.update(user.id, name=name)
        return user.model_copy(update={"name": name})
