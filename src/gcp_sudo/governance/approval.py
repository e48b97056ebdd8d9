"""Approval gate: validates an approver's decision and applies it."""

from typing import Optional

from loguru import logger

from ..audit import audit_logger
from ..errors import DomainError, EscalationError, SelfApprovalError, UnauthorizedError
from ..grants.manager import ConditionalGrantManager
from .authz import Authorizer, in_domain
from .escalation import ApprovalStatus, EscalationApproval


class ApprovalGate:
    """
    Validates an EscalationApproval and, if approved, grants the role.

    The approval payload round-trips through an untrusted intermediary, so
    the embedded request is authorized again here rather than trusting
    any earlier check.
    """

    def __init__(self, authorizer: Authorizer, grant_manager: ConditionalGrantManager):
        self._authorizer = authorizer
        self._grant_manager = grant_manager

    async def validate_approval(
        self, approval: EscalationApproval, timeout: Optional[float] = None
    ) -> None:
        """
        Validate and apply an approval decision.

        Checks, in order, stopping at the first failure:
        1. The embedded request is still authorized
        2. The approver belongs to the trusted domain
        3. The approver is not the requestor
        A denial then returns without touching IAM; an approval is granted.

        Args:
            approval: Approver's decision
            timeout: Grant deadline in seconds (defaults to the configured one)

        Raises:
            UnauthorizedError: Re-authorization of the request failed
            DomainError: Approver outside the trusted domain
            SelfApprovalError: Approver is the requestor
            Exception: Grant errors, unchanged
        """
        try:
            await self._check(approval)
        except EscalationError as e:
            audit_logger.log_rejected(approval, e)
            raise

        audit_logger.log_decision(approval)
        if approval.status is ApprovalStatus.DENIED:
            logger.info(f"Escalation for {approval.requestor} denied by {approval.approver}")
            return

        try:
            await self._grant_manager.grant(approval, timeout=timeout)
        except Exception as e:
            logger.error(f"couldn't set IAM policy for {approval.requestor}: {e}")
            raise
        audit_logger.log_grant(
            approval, self._authorizer.settings.grant_duration_hours
        )

    async def _check(self, approval: EscalationApproval) -> None:
        decision = await self._authorizer.authorize(approval.request)
        if not decision.authorized:
            raise UnauthorizedError(
                f"double checking authorization failed: {decision.reason}"
            ) from decision.error

        settings = self._authorizer.settings
        if not in_domain(approval.approver, settings):
            raise DomainError(approval.approver, settings.trusted_domain)

        if approval.approver.strip() == approval.requestor.strip():
            raise SelfApprovalError("self approval not allowed for this rule")
