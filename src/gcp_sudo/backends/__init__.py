"""Backend capability contracts and adapters.

Concrete adapters live in `gcp_sudo.backends.google` (Google APIs) and
`gcp_sudo.backends.mock` (in-memory) and are imported by whoever wires them.
"""

from .interfaces import (
    CONDITIONAL_POLICY_VERSION,
    Clock,
    IamPolicyReader,
    IamPolicyWriter,
    MembershipResolver,
    ResourceRef,
    ResourceType,
    SystemClock,
)

__all__ = [
    "CONDITIONAL_POLICY_VERSION",
    "Clock",
    "IamPolicyReader",
    "IamPolicyWriter",
    "MembershipResolver",
    "ResourceRef",
    "ResourceType",
    "SystemClock",
]
