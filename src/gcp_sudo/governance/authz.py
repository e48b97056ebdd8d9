"""Authorization engine for escalation requests."""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from ..backends.interfaces import MembershipResolver
from ..config import EscalationSettings
from ..errors import (
    DomainError,
    EscalationError,
    RequestValidationError,
    ResolverError,
)
from .escalation import EscalationRequest
from .policy import PolicyRules


@dataclass(frozen=True)
class AuthorizationDecision:
    """
    Authorization result.

    `authorized` is never True when `error` is set. `error` carries the
    explicit reason for non-authorization when there is one (domain,
    validation, membership lookup failure or no membership at all); a plain
    policy miss has none.
    """

    authorized: bool
    reason: str
    error: Optional[EscalationError] = None

    def __bool__(self) -> bool:
        return self.authorized


def in_domain(identity: str, settings: EscalationSettings) -> bool:
    """Exact, case-sensitive `@<domain>` suffix match."""
    return bool(identity) and identity.endswith(settings.domain_suffix)


class Authorizer:
    """
    Matches escalation requests against the policy.

    A request is authorized iff a single rule contains one of the
    requestor's freshly resolved groups, the requested role and the
    requested resource. Partial matches spread over several rules never
    authorize.
    """

    def __init__(
        self,
        policy: PolicyRules,
        resolver: MembershipResolver,
        settings: EscalationSettings,
    ):
        self._policy = policy
        self._resolver = resolver
        self._settings = settings

    @property
    def policy(self) -> PolicyRules:
        return self._policy

    @property
    def settings(self) -> EscalationSettings:
        return self._settings

    async def authorize(self, request: EscalationRequest) -> AuthorizationDecision:
        """
        Authorize a request against current group membership.

        Overwrites `request.groups` with the membership resolved by this call.

        Args:
            request: Escalation request to check

        Returns:
            AuthorizationDecision; never raises for domain, validation or
            lookup failures, those are carried in `decision.error`
        """
        request.groups = set()

        missing = request.missing_fields()
        if missing:
            error = RequestValidationError(
                f"escalation request is missing {', '.join(missing)}"
            )
            logger.warning(str(error))
            return AuthorizationDecision(False, str(error), error)

        if not in_domain(request.requestor, self._settings):
            error = DomainError(request.requestor, self._settings.trusted_domain)
            logger.warning(str(error))
            return AuthorizationDecision(False, str(error), error)

        try:
            groups = await self._resolver.list_groups(
                request.requestor, self._settings.trusted_domain
            )
        except Exception as e:
            logger.error(f"can't retrieve groups for {request.requestor}: {e}")
            error = ResolverError(f"can't get group membership for user: {request.requestor}")
            error.__cause__ = e
            return AuthorizationDecision(False, str(error), error)

        if not groups:
            if groups is None:
                reason = f"directory reported no membership for {request.requestor}"
            else:
                reason = f"{request.requestor} isn't in any directory groups"
            logger.warning(reason)
            return AuthorizationDecision(False, reason, ResolverError(reason))

        request.groups = set(groups)

        if self._policy.matches(request.groups, request.role, request.resource):
            return AuthorizationDecision(
                True,
                f"{request.requestor} may hold {request.role} on {request.resource}",
            )

        return AuthorizationDecision(
            False,
            f"no policy rule allows {request.requestor} to hold {request.role} "
            f"on {request.resource}",
        )
