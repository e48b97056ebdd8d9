"""Google Workspace directory and Cloud Resource Manager adapters.

Both clients are the blocking google-api-python-client services; every call
runs in a worker thread via asyncio.to_thread so the event loop (and the
caller's cancellation) stays responsive.
"""

import asyncio
from typing import Any, Optional

import google.auth
from google.auth import impersonated_credentials
from googleapiclient import discovery
from googleapiclient.errors import HttpError
from loguru import logger

from ..errors import ContentionError
from ..grants.models import PolicyDocument
from .interfaces import CONDITIONAL_POLICY_VERSION, ResourceRef, ResourceType

ADMIN_DIRECTORY_GROUP_READONLY_SCOPE = (
    "https://www.googleapis.com/auth/admin.directory.group.readonly"
)
HTTP_CONFLICT = 409


def _http_status(error: HttpError) -> int:
    resp = getattr(error, "resp", None)
    return int(getattr(resp, "status", 0) or 0)


class GoogleDirectoryResolver:
    """
    Membership resolver backed by the Admin SDK Directory API.

    The directory is read while impersonating a Workspace admin principal,
    which must be allowed to list groups for the domain.
    """

    def __init__(self, admin_account: str, service: Any = None):
        self._admin_account = admin_account
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            source_credentials, _ = google.auth.default()
            credentials = impersonated_credentials.Credentials(
                source_credentials=source_credentials,
                target_principal=self._admin_account,
                target_scopes=[ADMIN_DIRECTORY_GROUP_READONLY_SCOPE],
            )
            self._service = discovery.build(
                "admin", "directory_v1", credentials=credentials, cache_discovery=False
            )
            logger.info(f"Initialized directory client impersonating {self._admin_account}")
        return self._service

    def _list_blocking(self, identity: str, domain: str) -> Optional[set[str]]:
        groups: Optional[set[str]] = None
        page_token = None
        while True:
            response = (
                self._get_service()
                .groups()
                .list(domain=domain, userKey=identity, pageToken=page_token)
                .execute()
            )
            page = (response or {}).get("groups")
            if page is not None:
                groups = (groups or set()) | {g["email"] for g in page if g.get("email")}
            page_token = (response or {}).get("nextPageToken")
            if not page_token:
                return groups

    async def list_groups(self, identity: str, domain: str) -> Optional[set[str]]:
        return await asyncio.to_thread(self._list_blocking, identity, domain)


class GoogleIamBackend:
    """IAM policy reader and writer backed by Cloud Resource Manager v1."""

    def __init__(self, service: Any = None):
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = discovery.build(
                "cloudresourcemanager", "v1", cache_discovery=False
            )
        return self._service

    def _target(self, ref: ResourceRef) -> tuple[Any, str]:
        service = self._get_service()
        if ref.type is ResourceType.PROJECTS:
            return service.projects(), ref.id
        return service.organizations(), str(ref)

    @staticmethod
    def _execute(request: Any, action: str, resource: str) -> Any:
        try:
            return request.execute()
        except HttpError as e:
            if _http_status(e) == HTTP_CONFLICT:
                raise ContentionError(f"conflict during {action} on {resource}: {e}") from e
            raise

    def _get_blocking(self, ref: ResourceRef, requested_policy_version: int) -> Optional[dict]:
        collection, name = self._target(ref)
        body = {"options": {"requestedPolicyVersion": requested_policy_version}}
        return self._execute(
            collection.getIamPolicy(resource=name, body=body), "getIamPolicy", str(ref)
        )

    def _set_blocking(self, ref: ResourceRef, document: PolicyDocument) -> dict:
        collection, name = self._target(ref)
        body = {"policy": document.to_dict()}
        return self._execute(
            collection.setIamPolicy(resource=name, body=body), "setIamPolicy", str(ref)
        )

    async def get_policy(
        self,
        resource: str,
        requested_policy_version: int = CONDITIONAL_POLICY_VERSION,
    ) -> Optional[PolicyDocument]:
        ref = ResourceRef.parse(resource)
        data = await asyncio.to_thread(self._get_blocking, ref, requested_policy_version)
        if data is None:
            return None
        return PolicyDocument.from_dict(data)

    async def set_policy(self, resource: str, document: PolicyDocument) -> PolicyDocument:
        ref = ResourceRef.parse(resource)
        data = await asyncio.to_thread(self._set_blocking, ref, document)
        return PolicyDocument.from_dict(data or {})
