"""
Application Session

The single application-state object handed to every view. It owns the
current identity and the latest AppSnapshot, and has an explicit
lifecycle:

    start()   - phase 1: identity, bounded by a hard timeout
                phase 2: full data load (only with a session)
    refresh() - full re-fetch
    close()   - stop listening; anything still in flight is discarded

DESIGN DECISION: start-up never fails. A backend that is slow or down
degrades to the signed-out state instead of blocking the application.
Loads started before close() complete normally but their results are
dropped via the liveness flag; nothing is cancelled mid-call.
"""

import asyncio
from typing import Callable, Optional

from family_finance.aggregator import AppSnapshot, DataAggregator
from family_finance.audit import AuditLogger, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.models.audit import AuditEvent, AuditEventType, AuditSeverity
from family_finance.models.entities import User
from family_finance.services.auth.interface import AuthEvent, AuthInterface, AuthSession


logger = get_logger(__name__)


class AppSession:

    def __init__(
        self,
        aggregator: DataAggregator,
        auth: AuthInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._aggregator = aggregator
        self._auth = auth
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

        self.current_user: Optional[User] = None
        self.snapshot = AppSnapshot()
        self.is_alive = False
        self.loading = False

        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    async def _audit(
        self,
        event_type: AuditEventType,
        description: str,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log(AuditEvent(
                event_type=event_type,
                severity=severity,
                entity_type="session",
                actor_id=self.current_user.id if self.current_user else None,
                description=description,
            ))

    def _clear(self) -> None:
        self.current_user = None
        self.snapshot = AppSnapshot()

    async def _resolve_identity(self) -> Optional[User]:
        timeout = self._settings.session_init_timeout_seconds
        try:
            return await asyncio.wait_for(self._aggregator.resolve_identity(), timeout)
        except asyncio.TimeoutError:
            logger.warning("session_init_timeout", timeout_seconds=timeout)
            await self._audit(
                AuditEventType.SESSION_INIT_TIMEOUT,
                f"Identity not resolved within {timeout}s; continuing signed out",
                AuditSeverity.WARNING,
            )
        except Exception as e:
            logger.error("session_init_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error("session_init_failed", str(e))
        return None

    async def _load(self) -> None:
        """Re-resolve identity and reload data; drop results if closed meanwhile."""
        self.loading = True
        try:
            user = await self._resolve_identity()
            snapshot = AppSnapshot()
            if user is not None:
                snapshot = await self._aggregator.load_all(user.id)
                snapshot.current_user = user
        finally:
            self.loading = False

        if not self.is_alive:
            logger.debug("stale_load_discarded")
            return
        self.current_user = user
        self.snapshot = snapshot

    async def start(self) -> "AppSession":
        """Resolve identity, load data, and start following auth events."""
        self.is_alive = True
        self._unsubscribe = await self._auth.on_auth_state_change(self._on_auth_change)
        await self._load()

        logger.info("session_started", authenticated=self.is_authenticated)
        await self._audit(
            AuditEventType.SESSION_STARTED,
            "Session started" + ("" if self.is_authenticated else " without identity"),
        )
        return self

    def _on_auth_change(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        # Providers call back synchronously; the reload runs as a task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("auth_event_without_loop", auth_event=event.value)
            return
        task = loop.create_task(self.handle_auth_event(event, session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle_auth_event(
        self,
        event: AuthEvent,
        session: Optional[AuthSession] = None,
    ) -> None:
        """
        React to an auth change.

        SIGNED_OUT clears identity and every collection. SIGNED_IN and
        TOKEN_REFRESHED reload the profile and all data.
        """
        if not self.is_alive:
            return
        logger.info("auth_event", auth_event=event.value)

        if event == AuthEvent.SIGNED_OUT:
            self._clear()
            await self._audit(AuditEventType.SESSION_ENDED, "Signed out")
            return
        await self._load()

    async def settle(self) -> None:
        """Wait for reloads triggered by auth events."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def refresh(self) -> AppSnapshot:
        """Full re-fetch of identity and data."""
        if self.is_alive:
            await self._load()
        return self.snapshot

    async def close(self) -> None:
        """Stop following auth events. In-flight results are discarded."""
        self.is_alive = False
        if self._unsubscribe:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()
        logger.info("session_closed")
