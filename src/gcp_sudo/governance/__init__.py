"""Escalation Governance

Declarative policy rules, request/approval values, authorization and the
approval gate.
"""

from .policy import PolicyRules, Rule, load_policy
from .escalation import ApprovalStatus, EscalationApproval, EscalationRequest
from .authz import AuthorizationDecision, Authorizer
from .approval import ApprovalGate

__all__ = [
    "PolicyRules",
    "Rule",
    "load_policy",
    "ApprovalStatus",
    "EscalationApproval",
    "EscalationRequest",
    "AuthorizationDecision",
    "Authorizer",
    "ApprovalGate",
]
