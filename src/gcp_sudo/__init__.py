"""GCP Sudo - policy-gated, time-bound IAM escalation."""

__version__ = "0.1.0"

from .config import Config, EscalationSettings

__all__ = ["Config", "EscalationSettings", "__version__"]
