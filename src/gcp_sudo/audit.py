"""Structured audit records for escalation decisions.

Records go through loguru bound with `audit=True` and an `event` field, so
any sink (console, JSON file, log shipper) can filter them with
`lambda record: record["extra"].get("audit")`. Nothing is persisted here.
"""

from enum import Enum
from typing import Any

from loguru import logger

MAX_CONTENT_LENGTH = 1000  # Truncate free-text fields to prevent log bloat


class AuditEvent(str, Enum):
    """Audit event types for escalation decisions."""

    ESCALATION_REQUESTED = "escalation_requested"
    ESCALATION_UNAUTHORIZED = "escalation_unauthorized"
    APPROVAL_GRANTED = "approval_granted"
    APPROVAL_DENIED = "approval_denied"
    APPROVAL_REJECTED = "approval_rejected"
    GRANT_BOUND = "grant_bound"


class AuditLogger:
    """Emits escalation audit events as structured loguru records."""

    def __init__(self):
        self._logger = logger.bind(audit=True)

    @staticmethod
    def _truncate_content(value: Any, max_length: int = MAX_CONTENT_LENGTH) -> Any:
        if isinstance(value, str) and len(value) > max_length:
            return value[:max_length] + f"... [truncated, {len(value)} total chars]"
        if isinstance(value, dict):
            return {k: AuditLogger._truncate_content(v, max_length) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [AuditLogger._truncate_content(item, max_length) for item in value]
        return value

    def log(self, event: AuditEvent, message: str, level: str = "INFO", **fields):
        """
        Emit one audit record.

        Args:
            event: Audit event type
            message: Human-readable line
            level: Loguru level name
            **fields: Structured fields attached to the record
        """
        self._logger.bind(event=event.value, **self._truncate_content(fields)).log(
            level, message
        )

    def log_request(self, request, authorized: bool, reason: str):
        """Log the outcome of authorizing a new escalation request."""
        event = (
            AuditEvent.ESCALATION_REQUESTED if authorized else AuditEvent.ESCALATION_UNAUTHORIZED
        )
        self.log(
            event,
            f"Escalation request by {request.requestor} for {request.role} on "
            f"{request.resource}: {reason}",
            level="INFO" if authorized else "WARNING",
            requestor=request.requestor,
            role=request.role,
            resource=request.resource,
            reason=request.reason,
            groups=sorted(request.groups),
        )

    def log_decision(self, approval):
        """Log an accepted approve/deny decision before it is acted on."""
        # Local import: governance imports this module
        from .governance.escalation import ApprovalStatus

        approved = approval.status is ApprovalStatus.APPROVED
        self.log(
            AuditEvent.APPROVAL_GRANTED if approved else AuditEvent.APPROVAL_DENIED,
            str(approval),
            level="WARNING",
            **approval.to_dict(),
        )

    def log_rejected(self, approval, error: Exception):
        """Log an approval that failed validation."""
        self.log(
            AuditEvent.APPROVAL_REJECTED,
            f"{approval} rejected: {error}",
            level="WARNING",
            error_type=type(error).__name__,
            error=str(error),
            **approval.to_dict(),
        )

    def log_grant(self, approval, duration_hours: int):
        self.log(
            AuditEvent.GRANT_BOUND,
            f"Granted {approval.request.role} on {approval.request.resource} "
            f"to {approval.requestor} for {duration_hours} hours",
            requestor=approval.requestor,
            approver=approval.approver,
            role=approval.request.role,
            resource=approval.request.resource,
            duration_hours=duration_hours,
        )


# Module-level singleton
audit_logger = AuditLogger()
