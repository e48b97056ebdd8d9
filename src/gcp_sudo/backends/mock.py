"""In-memory directory and IAM backend.

Wired in place of the Google APIs when MOCK_GOOGLE_APIS is set, so the tool
surface can be exercised without touching a real organization. Writes are
etag-checked like the real Cloud Resource Manager: a write carrying a stale
etag raises ContentionError.
"""

import asyncio
import itertools
from dataclasses import replace
from typing import Iterable, Optional

from loguru import logger

from ..errors import ContentionError
from ..grants.models import Binding, PolicyDocument
from .interfaces import CONDITIONAL_POLICY_VERSION, ResourceRef

DEFAULT_GROUPS = frozenset({"prod-db-access@gmail.com", "on-call@gmail.com"})


def _seed_document() -> PolicyDocument:
    return PolicyDocument(
        bindings=(
            Binding(
                role="roles/owner",
                members=(
                    "user:bob@gmail.com",
                    "user:foo@gmail.com",
                    "user:bar@gmail.com",
                    "user:baz@gmail.com",
                ),
            ),
        ),
    )


class MockGoogleBackend:
    """Membership resolver, IAM reader and IAM writer backed by dicts."""

    def __init__(
        self,
        groups: Optional[Iterable[str]] = DEFAULT_GROUPS,
        documents: Optional[dict[str, PolicyDocument]] = None,
        seed_missing: bool = True,
    ):
        """
        Args:
            groups: Groups every identity belongs to (None = no membership)
            documents: Initial policy documents by resource reference
            seed_missing: Create a default document on first read of an
                unknown resource; when False such reads return None
        """
        self._groups = set(groups) if groups is not None else None
        self._etags = itertools.count(1)
        self._documents: dict[str, PolicyDocument] = {}
        self._seed_missing = seed_missing
        self.get_calls = 0
        self.set_calls = 0
        for resource, document in (documents or {}).items():
            self._documents[resource] = replace(document, etag=self._next_etag())

    def _next_etag(self) -> str:
        return f"etag-{next(self._etags)}"

    def document(self, resource: str) -> Optional[PolicyDocument]:
        """Current stored document (test helper)."""
        return self._documents.get(resource)

    async def list_groups(self, identity: str, domain: str) -> Optional[set[str]]:
        logger.debug(f"[mock] listing groups for {identity} in {domain}")
        return set(self._groups) if self._groups is not None else None

    async def get_policy(
        self,
        resource: str,
        requested_policy_version: int = CONDITIONAL_POLICY_VERSION,
    ) -> Optional[PolicyDocument]:
        ResourceRef.parse(resource)
        self.get_calls += 1
        document = self._documents.get(resource)
        if document is None and self._seed_missing:
            document = replace(_seed_document(), etag=self._next_etag())
            self._documents[resource] = document
        # Yield so concurrent read-modify-write cycles interleave
        await asyncio.sleep(0)
        return document

    async def set_policy(self, resource: str, document: PolicyDocument) -> PolicyDocument:
        ResourceRef.parse(resource)
        self.set_calls += 1
        current = self._documents.get(resource)
        if current is not None and document.etag != current.etag:
            raise ContentionError(
                f"There were concurrent policy changes on {resource} "
                f"(etag {document.etag} != {current.etag})"
            )
        stored = replace(document, etag=self._next_etag())
        self._documents[resource] = stored
        logger.debug(f"[mock] stored policy for {resource} with {len(stored.bindings)} bindings")
        return stored
