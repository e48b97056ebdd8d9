"""Declarative escalation policy rules."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml
from loguru import logger


@dataclass(frozen=True)
class Rule:
    """
    A single escalation rule.

    A request is authorized by this rule when one of the requestor's groups
    is in `groups`, the requested role is in `roles` and the requested
    resource is in `resources`. No wildcards, no resource hierarchy.
    """

    groups: frozenset[str] = field(default_factory=frozenset)
    roles: frozenset[str] = field(default_factory=frozenset)
    resources: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        """
        Build a rule from its document form.

        Raises:
            ValueError: If a field is not a list of strings
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid rule: expected dict, got {type(data).__name__}")

        values = {}
        for key in ("groups", "roles", "resources"):
            raw = data.get(key, [])
            if isinstance(raw, dict):
                # {"group@x": {}} set encoding
                raw = list(raw)
            if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
                raise ValueError(f"Rule '{key}' must be a list of strings")
            values[key] = frozenset(raw)
        return cls(**values)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "groups": sorted(self.groups),
            "roles": sorted(self.roles),
            "resources": sorted(self.resources),
        }

    def allows(self, groups: Iterable[str], role: str, resource: str) -> bool:
        """Check all three predicates against this one rule."""
        if role not in self.roles or resource not in self.resources:
            return False
        return not self.groups.isdisjoint(groups)


@dataclass(frozen=True)
class PolicyRules:
    """
    Ordered, immutable collection of escalation rules.

    Without a rule every request is denied. Order never changes the
    outcome of matching.
    """

    rules: tuple[Rule, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "PolicyRules":
        """
        Build a policy from `{"policy_rules": [...]}`.

        Raises:
            ValueError: If the document structure is invalid
        """
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid policy structure: expected dict, got {type(data).__name__}"
            )
        raw_rules = data.get("policy_rules", [])
        if not isinstance(raw_rules, list):
            raise ValueError("'policy_rules' must be a list")
        return cls(rules=tuple(Rule.from_dict(rule) for rule in raw_rules))

    @classmethod
    def from_json(cls, text: str) -> "PolicyRules":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"config has invalid policy: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "PolicyRules":
        """
        Load policy from a YAML file.

        Raises:
            FileNotFoundError: If the YAML file doesn't exist
            yaml.YAMLError: If YAML is malformed
            ValueError: If the document structure is invalid
        """
        yaml_file = Path(yaml_path)
        if not yaml_file.exists():
            raise FileNotFoundError(f"Policy YAML not found: {yaml_path}")

        with open(yaml_file) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, list[dict[str, list[str]]]]:
        return {"policy_rules": [rule.to_dict() for rule in self.rules]}

    def matches(self, groups: Iterable[str], role: str, resource: str) -> bool:
        """Return True if any single rule satisfies groups, role and resource."""
        groups = frozenset(groups)
        return any(rule.allows(groups, role, resource) for rule in self.rules)

    def list_options(self) -> tuple[set[str], set[str], set[str]]:
        """Return de-duplicated groups, roles and resources across all rules."""
        groups: set[str] = set()
        roles: set[str] = set()
        resources: set[str] = set()
        for rule in self.rules:
            groups.update(rule.groups)
            roles.update(rule.roles)
            resources.update(rule.resources)
        return groups, roles, resources


def load_policy(config) -> PolicyRules:
    """
    Load the escalation policy from POLICY_RULES (JSON) or POLICY_RULES_PATH (YAML).

    Args:
        config: Config class providing POLICY_RULES and POLICY_RULES_PATH

    Returns:
        Loaded PolicyRules
    """
    if config.POLICY_RULES:
        policy = PolicyRules.from_json(config.POLICY_RULES)
        source = "POLICY_RULES"
    else:
        policy = PolicyRules.from_yaml(config.POLICY_RULES_PATH)
        source = config.POLICY_RULES_PATH

    if not policy.rules:
        logger.warning(f"Policy from {source} has no rules; every request will be denied")
    else:
        logger.info(f"Loaded {len(policy.rules)} escalation rules from {source}")
    return policy
