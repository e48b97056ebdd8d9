"""Conditional IAM grant manager."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from loguru import logger

from ..backends.interfaces import (
    CONDITIONAL_POLICY_VERSION,
    Clock,
    IamPolicyReader,
    IamPolicyWriter,
    SystemClock,
)
from ..config import EscalationSettings
from ..errors import ContentionError, GrantTimeoutError, PolicyNotFoundError
from .models import Binding, Condition, PolicyDocument

if TYPE_CHECKING:
    from ..governance.escalation import EscalationApproval


def principal_of(identity: str) -> str:
    """IAM member string for a user identity."""
    return f"user:{identity}"


class ConditionalGrantManager:
    """
    Binds an approved role to the requestor with an expiry condition.

    The binding is merged into the resource's existing IAM policy with a
    read-append-write cycle. A conflict from the backend on either the read
    or the write sleeps for a fixed interval and restarts from a fresh read,
    so the append always lands on the current document.

    CAUTION: the existing policy must always be appended to. Writing a
    document that only holds the new binding removes every other
    permission on the resource, up to and including an entire organization.
    """

    def __init__(
        self,
        reader: IamPolicyReader,
        writer: IamPolicyWriter,
        settings: EscalationSettings,
        clock: Optional[Clock] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._reader = reader
        self._writer = writer
        self._settings = settings
        self._clock = clock or SystemClock()
        self._sleep = sleep

    def build_binding(self, approval: EscalationApproval) -> Binding:
        """
        Build the single conditional binding for an approval.

        Conditions cannot be set on primitive roles; the backend rejects
        those and the error is surfaced unchanged.
        """
        request = approval.request
        expiry = self._clock.now() + timedelta(hours=self._settings.grant_duration_hours)
        return Binding(
            role=request.role,
            members=(principal_of(request.requestor),),
            condition=Condition.expiring(request.role, request.requestor, expiry),
        )

    async def grant(
        self, approval: EscalationApproval, timeout: Optional[float] = None
    ) -> None:
        """
        Merge a time-boxed binding for `approval` into the resource policy.

        Args:
            approval: Approved escalation to act on
            timeout: Overall deadline in seconds; defaults to the configured
                grant timeout. None retries contention until cancelled.

        Raises:
            PolicyNotFoundError: If the resource has no policy document
            GrantTimeoutError: If the deadline elapses
            Exception: Any non-contention backend error, unchanged
        """
        if timeout is None:
            timeout = self._settings.grant_timeout_seconds

        binding = self.build_binding(approval)
        resource = approval.request.resource
        logger.debug(f"Binding {binding.role} for {binding.members[0]} on {resource}")

        if timeout is None:
            await self._bind_with_retry(resource, binding)
            return
        try:
            await asyncio.wait_for(self._bind_with_retry(resource, binding), timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Grant on {resource} timed out after {timeout}s")
            raise GrantTimeoutError(
                f"timed out after {timeout}s setting iam policy on {resource}"
            ) from e

    async def _bind_with_retry(self, resource: str, binding: Binding) -> PolicyDocument:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._bind_once(resource, binding)
            except ContentionError as e:
                logger.warning(
                    f"IAM policy conflict on {resource} (attempt {attempt}): {e}; "
                    f"retrying in {self._settings.conflict_retry_seconds}s"
                )
                await self._sleep(self._settings.conflict_retry_seconds)

    async def _bind_once(self, resource: str, binding: Binding) -> PolicyDocument:
        existing = await self._reader.get_policy(
            resource, requested_policy_version=CONDITIONAL_POLICY_VERSION
        )
        if existing is None:
            # Never synthesize a policy: an absent document usually means a
            # wrong resource reference, and writing one would wipe the real policy.
            raise PolicyNotFoundError(f"no existing iam policy was found for {resource}")

        updated = existing.with_binding(binding, version=CONDITIONAL_POLICY_VERSION)
        result = await self._writer.set_policy(resource, updated)
        logger.info(
            f"Bound {binding.role} to {', '.join(binding.members)} on {resource} "
            f"({binding.condition.title})"
        )
        return result
