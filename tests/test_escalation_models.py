"""Tests for escalation request/approval values and IAM policy documents."""

import json
from datetime import datetime, timezone

import pytest

from gcp_sudo.errors import RequestValidationError
from gcp_sudo.governance import ApprovalStatus, EscalationApproval, EscalationRequest
from gcp_sudo.grants import Binding, Condition, PolicyDocument
from tests.conftest import make_approval, make_request


@pytest.mark.unit
def test_create_strips_identity_fields_and_stamps_time():
    request = EscalationRequest.create(
        " user@co ",
        "roles/x\n",
        " orgs/1",
        "  on call  ",
        now=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
    )

    assert request.requestor == "user@co"
    assert request.role == "roles/x"
    assert request.resource == "orgs/1"
    assert request.reason == "  on call  "
    assert request.timestamp == "2024-05-06T07:08:09+00:00"
    assert request.groups == set()


@pytest.mark.unit
def test_missing_fields_reports_blank_values():
    request = EscalationRequest(requestor="user@co", role="  ", resource="")

    assert request.missing_fields() == ["role", "resource"]


@pytest.mark.unit
def test_pending_approval_is_denied_until_decided():
    approval = EscalationApproval.pending(make_request())

    assert approval.status is ApprovalStatus.DENIED
    assert approval.approver == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "approved, status",
    [(True, ApprovalStatus.APPROVED), (False, ApprovalStatus.DENIED)],
)
def test_decide_returns_copy(approved, status):
    pending = EscalationApproval.pending(make_request())

    decided = pending.decide(" lead@co ", approved)

    assert decided is not pending
    assert decided.approver == "lead@co"
    assert decided.status is status
    assert pending.approver == ""


@pytest.mark.unit
def test_approval_json_is_flat_and_omits_groups():
    approval = make_approval()
    approval.request.groups = {"oncall@co"}

    data = json.loads(approval.to_json())

    assert data == {
        "requestor": "user@co",
        "role": "roles/x",
        "resource": "orgs/1",
        "reason": "incident 42",
        "timestamp": "2024-01-01T12:00:00+00:00",
        "approver": "lead@co",
        "status": "approved",
    }


@pytest.mark.unit
def test_from_json_ignores_injected_groups():
    data = make_approval().to_dict()
    data["groups"] = ["oncall@co", "admins@co"]

    approval = EscalationApproval.from_json(json.dumps(data))

    assert approval.request.groups == set()
    assert approval.request.requestor == "user@co"
    assert approval.status is ApprovalStatus.APPROVED


@pytest.mark.unit
def test_from_json_strips_identity_fields():
    data = make_approval().to_dict()
    data.update(
        requestor=" user@co\t",
        role="roles/x ",
        resource="\norgs/1",
        approver=" lead@co",
        reason="  spaced  ",
    )

    approval = EscalationApproval.from_json(json.dumps(data))

    assert approval.requestor == "user@co"
    assert approval.request.role == "roles/x"
    assert approval.request.resource == "orgs/1"
    assert approval.approver == "lead@co"
    assert approval.request.reason == "  spaced  "


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "[]",
        json.dumps({"requestor": 42, "role": "roles/x", "resource": "orgs/1"}),
        json.dumps({"requestor": "a@co", "status": "maybe"}),
        json.dumps({"requestor": "a@co", "approver": ["b@co"]}),
    ],
)
def test_from_json_rejects_invalid_payloads(payload):
    with pytest.raises(RequestValidationError):
        EscalationApproval.from_json(payload)


@pytest.mark.unit
def test_audit_string_names_approver():
    approval = make_approval()

    assert str(approval) == (
        "[AUDIT], Requestor: user@co, Role: roles/x, Resource: orgs/1, "
        "When: 2024-01-01T12:00:00+00:00, Reason: incident 42, Approver: lead@co"
    )


@pytest.mark.unit
def test_audit_string_names_denier():
    approval = make_approval(status=ApprovalStatus.DENIED)

    assert str(approval).endswith("Denier: lead@co")


@pytest.mark.unit
def test_outcome_text():
    assert ApprovalStatus.APPROVED.outcome_text(2) == (
        "Approved. The role has been granted for 2 hours."
    )
    assert ApprovalStatus.DENIED.outcome_text(2) == "The Request has been denied."


@pytest.mark.unit
def test_policy_document_round_trips_unknown_fields():
    raw = {
        "version": 3,
        "etag": "BwXhqDnD0Lo=",
        "auditConfigs": [{"service": "allServices"}],
        "bindings": [
            {"role": "roles/owner", "members": ["user:bob@co"]},
            {
                "role": "roles/x",
                "members": ["user:user@co"],
                "condition": {
                    "expression": 'request.time < timestamp("2024-01-01T14:00:00Z")',
                    "title": "Until: 2024-01-01T14:00:00Z",
                },
            },
        ],
    }

    document = PolicyDocument.from_dict(raw)

    assert document.bindings[1].condition.title == "Until: 2024-01-01T14:00:00Z"
    assert document.to_dict()["auditConfigs"] == raw["auditConfigs"]
    assert document.to_dict()["etag"] == "BwXhqDnD0Lo="


@pytest.mark.unit
def test_with_binding_leaves_original_untouched():
    original = PolicyDocument(
        bindings=(Binding(role="roles/owner", members=("user:bob@co",)),), etag="e1"
    )
    added = Binding(
        role="roles/x",
        members=("user:user@co",),
        condition=Condition(expression="true", title="t"),
    )

    updated = original.with_binding(added, version=3)

    assert updated.bindings == original.bindings + (added,)
    assert updated.version == 3
    assert updated.etag == "e1"
    assert original.version == 1
    assert len(original.bindings) == 1
