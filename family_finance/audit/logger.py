"""
Audit Logger

Every significant action in the system is logged. The audit logger:
- Is async so it can sit in the awaited call chain of an operation
- Never raises (a broken log sink must not fail a ledger write)
- Supports correlation IDs to trace all writes of one user action
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from family_finance.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Module-level structured logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured log at the severity carried by the event.
    Recent events are also kept in memory so callers (and tests) can
    inspect what an operation did.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("family_finance.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        return list(self._history)

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._history if e.correlation_id == correlation_id]

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log sink raised.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    async def log_rejected(
        self,
        operation: str,
        reason: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log an operation rejected by validation before any write."""
        await self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            reason=reason,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_write_failed(
        self,
        step: str,
        completed_steps: list[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.write_failed(
            step=step,
            completed_steps=completed_steps,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_membership(
        self,
        event_type: AuditEventType,
        account_id: str,
        user_id: str,
        actor_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.membership_changed(
            event_type=event_type,
            account_id=account_id,
            user_id=user_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_notification_failed(
        self,
        recipients: list[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_failed(
            recipients=recipients,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_fetch_failed(
        self,
        entity_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.fetch_failed(
            entity_kind=entity_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new operation ID for tracking related events and writes.

    Use this at the start of a user action (e.g. a transfer) and pass it
    through all subsequent writes.
    """
    return uuid4()
