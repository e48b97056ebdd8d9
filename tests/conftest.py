"""Pytest fixtures and test utilities for the escalation test suite."""

from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from gcp_sudo.config import EscalationSettings
from gcp_sudo.governance import (
    ApprovalGate,
    ApprovalStatus,
    Authorizer,
    EscalationApproval,
    EscalationRequest,
    PolicyRules,
    Rule,
)
from gcp_sudo.grants import Binding, ConditionalGrantManager, PolicyDocument

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock frozen at a given instant."""

    def __init__(self, moment: datetime = FIXED_NOW):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


# ============================================================================
# POLICY & SETTINGS FIXTURES
# ============================================================================


@pytest.fixture
def settings():
    """Settings for the `co` trusted domain with a 2 hour grant."""
    return EscalationSettings(
        trusted_domain="co",
        grant_duration_hours=2,
        conflict_retry_seconds=5,
    )


@pytest.fixture
def policy():
    """Single rule: oncall@co may hold roles/x on orgs/1."""
    return PolicyRules(
        rules=(
            Rule(
                groups=frozenset({"oncall@co"}),
                roles=frozenset({"roles/x"}),
                resources=frozenset({"orgs/1"}),
            ),
        )
    )


@pytest.fixture
def clock():
    return FixedClock()


# ============================================================================
# BACKEND FAKES
# ============================================================================


@pytest.fixture
def resolver():
    """Membership resolver returning {"oncall@co"} for everyone."""
    fake = AsyncMock()
    fake.list_groups.return_value = {"oncall@co"}
    return fake


@pytest.fixture
def existing_document():
    """Policy document with two pre-existing bindings."""
    return PolicyDocument(
        bindings=(
            Binding(role="roles/owner", members=("user:bob@co",)),
            Binding(role="roles/viewer", members=("group:everyone@co",)),
        ),
        version=1,
        etag="BwXhqDnD0Lo=",
        extra={"auditConfigs": [{"service": "allServices"}]},
    )


@pytest.fixture
def reader(existing_document):
    fake = AsyncMock()
    fake.get_policy.return_value = existing_document
    return fake


@pytest.fixture
def writer():
    fake = AsyncMock()
    fake.set_policy.side_effect = lambda resource, document: document
    return fake


@pytest.fixture
def no_sleep():
    """Sleep replacement so contention retries run instantly."""
    return AsyncMock()


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def authorizer(policy, resolver, settings):
    return Authorizer(policy, resolver, settings)


@pytest.fixture
def grant_manager(reader, writer, settings, clock, no_sleep):
    return ConditionalGrantManager(reader, writer, settings, clock=clock, sleep=no_sleep)


@pytest.fixture
def gate(authorizer, grant_manager):
    return ApprovalGate(authorizer, grant_manager)


# ============================================================================
# HELPER UTILITIES
# ============================================================================


def make_request(
    requestor: str = "user@co",
    role: str = "roles/x",
    resource: str = "orgs/1",
    reason: str = "incident 42",
) -> EscalationRequest:
    return EscalationRequest(
        requestor=requestor,
        role=role,
        resource=resource,
        reason=reason,
        timestamp="2024-01-01T12:00:00+00:00",
    )


def make_approval(
    approver: str = "lead@co",
    status: ApprovalStatus = ApprovalStatus.APPROVED,
    request: Optional[EscalationRequest] = None,
    **request_fields,
) -> EscalationApproval:
    return EscalationApproval(
        request=request or make_request(**request_fields),
        approver=approver,
        status=status,
    )
