"""IAM policy document models for conditional grants."""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

_BINDING_KEYS = {"role", "members", "condition"}
_DOCUMENT_KEYS = {"bindings", "version", "etag"}


def format_rfc3339(moment: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC timestamp (`2006-01-02T15:04:05Z`)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Condition:
    """Backend-evaluated expression restricting when a binding is active."""

    expression: str
    title: str = ""
    description: str = ""

    @classmethod
    def expiring(cls, role: str, member: str, expiry: datetime) -> "Condition":
        """Condition that holds while the request time is before `expiry`."""
        until = format_rfc3339(expiry)
        return cls(
            title=f"Until: {until}",
            description=f"Grant {role} on {member} until {until}",
            expression=f'request.time < timestamp("{until}")',
        )

    def to_dict(self) -> dict[str, str]:
        data = {"expression": self.expression}
        if self.title:
            data["title"] = self.title
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Condition":
        return cls(
            expression=data.get("expression", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class Binding:
    """Role granted to a list of members, optionally conditional."""

    role: str
    members: tuple[str, ...]
    condition: Optional[Condition] = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data["role"] = self.role
        data["members"] = list(self.members)
        if self.condition is not None:
            data["condition"] = self.condition.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Binding":
        condition = data.get("condition")
        return cls(
            role=data.get("role", ""),
            members=tuple(data.get("members", [])),
            condition=Condition.from_dict(condition) if condition else None,
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _BINDING_KEYS},
        )


@dataclass(frozen=True)
class PolicyDocument:
    """
    Externally-owned IAM policy of a resource.

    Fields the engine does not model (auditConfigs and friends) are kept in
    `extra` so writing the document back never drops them.
    """

    bindings: tuple[Binding, ...] = ()
    version: int = 1
    etag: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def with_binding(self, binding: Binding, version: int) -> "PolicyDocument":
        """Return a copy with `binding` appended after every existing binding."""
        return replace(self, bindings=(*self.bindings, binding), version=version)

    def to_dict(self) -> dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data["bindings"] = [binding.to_dict() for binding in self.bindings]
        data["version"] = self.version
        if self.etag is not None:
            data["etag"] = self.etag
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyDocument":
        return cls(
            bindings=tuple(Binding.from_dict(b) for b in data.get("bindings", [])),
            version=int(data.get("version", 1) or 1),
            etag=data.get("etag"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _DOCUMENT_KEYS},
        )
