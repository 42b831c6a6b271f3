"""
Audit Models for Family Finance

Every balance-affecting or membership-changing action is logged for audit
purposes. This provides:
1. Traceability of multi-write operations by operation ID
2. Debugging information when a write sequence breaks halfway
3. An explicit record of role assignment at signup

Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger
    ENTRY_RECORDED = "entry_recorded"
    TRANSFER_RECORDED = "transfer_recorded"
    SUSPENSION_TOGGLED = "suspension_toggled"
    OPERATION_REJECTED = "operation_rejected"
    WRITE_FAILED = "write_failed"
    WRITES_COMPENSATED = "writes_compensated"

    # Membership
    ACCOUNT_CREATED = "account_created"
    JOIN_REQUESTED = "join_requested"
    JOIN_ACCEPTED = "join_accepted"
    JOIN_REJECTED = "join_rejected"
    MEMBER_ADDED = "member_added"
    MEMBER_LEFT = "member_left"
    MEMBER_REMOVED = "member_removed"

    # Notifications
    NOTIFICATION_FAILED = "notification_failed"
    BROADCAST_SENT = "broadcast_sent"

    # Identity & session
    ROLE_ASSIGNED = "role_assigned"
    SESSION_STARTED = "session_started"
    SESSION_INIT_TIMEOUT = "session_init_timeout"
    SESSION_ENDED = "session_ended"
    FETCH_FAILED = "fetch_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'notification')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Backend ID of the entity this event relates to"
    )

    # Correlation - all events of one ledger/membership operation
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Operation ID shared by every event of one user action"
    )

    # Who did it
    actor_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor_id": self.actor_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_recorded(account_id, "expense", "30", actor_id, op_id)
        event = AuditEventBuilder.write_failed("credit_leg", error, op_id)
    """

    @staticmethod
    def entry_recorded(
        account_id: str,
        entry_type: str,
        amount: str,
        new_balance: str,
        actor_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_RECORDED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Recorded {entry_type} of {amount}",
            details={
                "entry_type": entry_type,
                "amount": amount,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def transfer_recorded(
        source_account_id: str,
        target_account_id: str,
        amount: str,
        actor_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            entity_type="account",
            entity_id=source_account_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Transferred {amount} to account {target_account_id}",
            details={
                "source_account_id": source_account_id,
                "target_account_id": target_account_id,
                "amount": amount,
            },
        )

    @staticmethod
    def suspension_toggled(
        account_id: str,
        is_suspended: bool,
        actor_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUSPENSION_TOGGLED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description="Account suspended" if is_suspended else "Account reactivated",
            details={"is_suspended": is_suspended},
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        reason: str,
        actor_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"{operation} rejected: {reason}"[:500],
            details={"operation": operation, "reason": reason},
        )

    @staticmethod
    def write_failed(
        step: str,
        completed_steps: list[str],
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Write step '{step}' failed after {len(completed_steps)} completed steps",
            details={"failed_step": step, "completed_steps": completed_steps},
            error_message=error_message,
        )

    @staticmethod
    def writes_compensated(
        undone_steps: list[str],
        failed_undo_steps: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITES_COMPENSATED,
            severity=AuditSeverity.WARNING if not failed_undo_steps else AuditSeverity.CRITICAL,
            correlation_id=correlation_id,
            description=f"Compensated {len(undone_steps)} writes",
            details={
                "undone_steps": undone_steps,
                "failed_undo_steps": failed_undo_steps,
            },
        )

    @staticmethod
    def membership_changed(
        event_type: AuditEventType,
        account_id: str,
        user_id: str,
        actor_id: Optional[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Membership change for user {user_id}: {event_type.value}",
            details={"user_id": user_id},
        )

    @staticmethod
    def notification_failed(
        recipients: list[str],
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="notification",
            correlation_id=correlation_id,
            description=f"Could not notify {len(recipients)} users",
            details={"recipients": recipients},
            error_message=error_message,
        )

    @staticmethod
    def role_assigned(
        user_id: str,
        role: str,
        policy: str,
        existing_profiles: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLE_ASSIGNED,
            entity_type="profile",
            entity_id=user_id,
            actor_id=user_id,
            description=f"Assigned role '{role}' at signup under policy '{policy}'",
            details={
                "role": role,
                "policy": policy,
                "existing_profiles": existing_profiles,
            },
        )

    @staticmethod
    def fetch_failed(
        entity_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_kind,
            correlation_id=correlation_id,
            description=f"Fetching {entity_kind} failed; using empty result",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
