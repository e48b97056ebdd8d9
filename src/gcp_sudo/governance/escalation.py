"""Escalation request and approval values."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from ..errors import RequestValidationError

_REQUEST_FIELDS = ("requestor", "role", "resource", "reason", "timestamp")
_IDENTITY_FIELDS = ("requestor", "role", "resource")


class ApprovalStatus(str, Enum):
    """Approver's decision on an escalation request."""

    APPROVED = "approved"
    DENIED = "denied"

    @property
    def actor_label(self) -> str:
        return "Approver" if self is ApprovalStatus.APPROVED else "Denier"

    def outcome_text(self, duration_hours: int) -> str:
        """Message shown to the requestor once the decision is applied."""
        if self is ApprovalStatus.APPROVED:
            return f"Approved. The role has been granted for {duration_hours} hours."
        return "The Request has been denied."


@dataclass
class EscalationRequest:
    """
    Request to hold `role` on `resource` for a limited time.

    Attributes:
        requestor: Email of the identity asking for the role
        role: IAM role to grant
        resource: Resource reference, `<type>/<id>`
        reason: Free-text justification
        timestamp: When the request was raised
        groups: Directory groups of the requestor. Populated only by the
            authorizer from a fresh membership lookup, never from input.
    """

    requestor: str
    role: str
    resource: str
    reason: str = ""
    timestamp: str = ""
    groups: set[str] = field(default_factory=set)

    @classmethod
    def create(
        cls,
        requestor: str,
        role: str,
        resource: str,
        reason: str,
        now: Optional[datetime] = None,
    ) -> "EscalationRequest":
        if now is None:
            now = datetime.now(timezone.utc)
        return cls(
            requestor=requestor.strip(),
            role=role.strip(),
            resource=resource.strip(),
            reason=reason,
            timestamp=now.isoformat(timespec="seconds"),
        )

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in _IDENTITY_FIELDS
            if not getattr(self, name) or not getattr(self, name).strip()
        ]

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in _REQUEST_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EscalationRequest":
        """
        Build a request from untrusted input.

        Identity fields are whitespace-stripped the same way `create` strips
        them, so a padded requestor compares equal to the bare identity.
        Any `groups` key is ignored.
        """
        if not isinstance(data, dict):
            raise RequestValidationError(
                f"invalid escalation request: expected object, got {type(data).__name__}"
            )
        values = {}
        for name in _REQUEST_FIELDS:
            value = data.get(name, "")
            if not isinstance(value, str):
                raise RequestValidationError(f"escalation request field '{name}' must be a string")
            values[name] = value.strip() if name in _IDENTITY_FIELDS else value
        return cls(**values)


@dataclass
class EscalationApproval:
    """
    An approver's decision on an embedded EscalationRequest.

    One-shot value: validated and acted upon exactly once.
    """

    request: EscalationRequest
    approver: str = ""
    status: ApprovalStatus = ApprovalStatus.DENIED

    @classmethod
    def pending(cls, request: EscalationRequest) -> "EscalationApproval":
        return cls(request=request)

    def decide(self, approver: str, approved: bool) -> "EscalationApproval":
        """Return a copy carrying the approver's identity and decision."""
        return EscalationApproval(
            request=self.request,
            approver=approver.strip(),
            status=ApprovalStatus.APPROVED if approved else ApprovalStatus.DENIED,
        )

    @property
    def requestor(self) -> str:
        return self.request.requestor

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.request.to_dict(),
            "approver": self.approver,
            "status": self.status.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EscalationApproval":
        request = EscalationRequest.from_dict(data)
        approver = data.get("approver", "")
        if not isinstance(approver, str):
            raise RequestValidationError("escalation approval field 'approver' must be a string")
        try:
            status = ApprovalStatus(data.get("status", ApprovalStatus.DENIED.value))
        except ValueError as e:
            raise RequestValidationError(f"invalid approval status: {e}") from e
        return cls(request=request, approver=approver.strip(), status=status)

    @classmethod
    def from_json(cls, payload: str) -> "EscalationApproval":
        """
        Parse an approval payload that came back through an untrusted intermediary.

        Raises:
            RequestValidationError: If the payload is not a valid approval
        """
        try:
            data = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as e:
            raise RequestValidationError(f"can't unmarshal approval payload: {e}") from e
        return cls.from_dict(data)

    def __str__(self) -> str:
        r = self.request
        return (
            f"[AUDIT], Requestor: {r.requestor}, Role: {r.role}, Resource: {r.resource}, "
            f"When: {r.timestamp}, Reason: {r.reason}, "
            f"{self.status.actor_label}: {self.approver}"
        )
