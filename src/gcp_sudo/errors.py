"""Exception hierarchy for escalation authorization and grants."""


class EscalationError(Exception):
    """Base class for every failure the escalation flow reports."""


class RequestValidationError(EscalationError):
    """Request or approval payload is malformed or missing fields."""


class DomainError(EscalationError):
    """Identity does not belong to the trusted domain."""

    def __init__(self, identity: str, domain: str):
        self.identity = identity
        self.domain = domain
        super().__init__(f"unauthorized user, not from {domain}: {identity}")


class ResolverError(EscalationError):
    """Directory group membership could not be resolved."""


class UnauthorizedError(EscalationError):
    """No policy rule authorizes the requested role/resource pair."""


class SelfApprovalError(EscalationError):
    """Approver and requestor are the same identity."""


class ContentionError(EscalationError):
    """The IAM backend rejected a read or write with a concurrency conflict."""


class PolicyNotFoundError(EscalationError):
    """The IAM backend returned no policy document for the resource."""


class ResourceTypeError(EscalationError):
    """Resource reference does not start with a supported type prefix."""


class GrantTimeoutError(EscalationError):
    """The grant deadline elapsed while retrying under contention."""
