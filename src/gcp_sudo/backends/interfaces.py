"""Narrow capability contracts consumed by the escalation engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from ..errors import ResourceTypeError

if TYPE_CHECKING:
    from ..grants.models import PolicyDocument

# Policy schema version that supports conditional bindings
CONDITIONAL_POLICY_VERSION = 3


class ResourceType(str, Enum):
    """Resource types the IAM backend can address."""

    PROJECTS = "projects"
    ORGANIZATIONS = "organizations"


@dataclass(frozen=True)
class ResourceRef:
    """Parsed `<type>/<id>` resource reference."""

    type: ResourceType
    id: str

    @classmethod
    def parse(cls, resource: str) -> "ResourceRef":
        """
        Parse a resource reference.

        Raises:
            ResourceTypeError: If the prefix is not a supported type
        """
        prefix, sep, ident = (resource or "").partition("/")
        if sep and ident:
            try:
                return cls(type=ResourceType(prefix), id=ident)
            except ValueError:
                pass
        raise ResourceTypeError(
            f"unexpected resource type, please check the configuration: {resource!r}"
        )

    def __str__(self) -> str:
        return f"{self.type.value}/{self.id}"


@runtime_checkable
class MembershipResolver(Protocol):
    """Resolves an identity's current directory-group membership."""

    async def list_groups(self, identity: str, domain: str) -> Optional[set[str]]:
        """
        Return the group emails `identity` belongs to within `domain`.

        Returns None when the directory reports no membership at all.
        Raises on lookup failure.
        """


@runtime_checkable
class IamPolicyReader(Protocol):
    """Reads a resource's IAM policy document."""

    async def get_policy(
        self,
        resource: str,
        requested_policy_version: int = CONDITIONAL_POLICY_VERSION,
    ) -> Optional[PolicyDocument]:
        """Fetch the current document; raise ContentionError on a conflict."""


@runtime_checkable
class IamPolicyWriter(Protocol):
    """Writes a resource's IAM policy document."""

    async def set_policy(self, resource: str, document: PolicyDocument) -> PolicyDocument:
        """Replace the stored document; raise ContentionError on a conflict."""


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time."""


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
