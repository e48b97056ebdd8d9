"""Conditional Grant Manager

Time-boxed IAM bindings merged into externally-owned policy documents.
"""

from .models import Binding, Condition, PolicyDocument, format_rfc3339
from .manager import ConditionalGrantManager, principal_of

__all__ = [
    "Binding",
    "Condition",
    "PolicyDocument",
    "format_rfc3339",
    "ConditionalGrantManager",
    "principal_of",
]
