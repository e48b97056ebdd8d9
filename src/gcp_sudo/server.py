"""FastMCP escalation server: request, review and list escalation options."""

import json
import sys
from dataclasses import dataclass
from typing import Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger

from .audit import audit_logger
from .backends.interfaces import Clock, SystemClock
from .config import Config, EscalationSettings
from .errors import EscalationError
from .governance import (
    ApprovalGate,
    Authorizer,
    EscalationApproval,
    EscalationRequest,
    PolicyRules,
    load_policy,
)
from .grants import ConditionalGrantManager

# Constants
SERVER_NAME = "GcpSudo"
HOST = Config.HOST
PORT = Config.PORT


@dataclass
class EscalationController:
    """Tool logic, independent of the MCP transport."""

    authorizer: Authorizer
    gate: ApprovalGate
    clock: Clock

    @property
    def settings(self) -> EscalationSettings:
        return self.authorizer.settings

    def list_options(self) -> dict[str, list[str]]:
        groups, roles, resources = self.authorizer.policy.list_options()
        return {
            "groups": sorted(groups),
            "roles": sorted(roles),
            "resources": sorted(resources),
        }

    async def request(
        self, requestor: str, role: str, resource: str, reason: str
    ) -> EscalationApproval:
        """
        Authorize a new escalation request.

        Returns:
            Pending approval to hand to an approver

        Raises:
            EscalationError: With the explicit reason when not authorized
        """
        request = EscalationRequest.create(
            requestor, role, resource, reason, now=self.clock.now()
        )
        decision = await self.authorizer.authorize(request)
        audit_logger.log_request(request, decision.authorized, decision.reason)
        if decision.error is not None:
            raise decision.error
        if not decision.authorized:
            raise EscalationError(
                "unauthorized - please double check it's a valid role and resource "
                f"combination ({decision.reason})"
            )
        return EscalationApproval.pending(request)

    async def review(self, payload: str, approver: str, approve: bool) -> str:
        """
        Apply an approver's decision to a pending approval payload.

        Returns:
            Outcome text for the requestor

        Raises:
            EscalationError: If the approval is rejected or the grant fails
        """
        approval = EscalationApproval.from_json(payload).decide(approver, approve)
        await self.gate.validate_approval(approval)
        return approval.status.outcome_text(self.settings.grant_duration_hours)


def build_controller(
    config: type = Config,
    policy: Optional[PolicyRules] = None,
    clock: Optional[Clock] = None,
) -> EscalationController:
    """
    Wire policy, backends and engine from configuration.

    MOCK_GOOGLE_APIS selects the in-memory backend, otherwise the Google
    adapters are used.
    """
    config.validate()
    settings = EscalationSettings.from_config(config)
    if policy is None:
        policy = load_policy(config)
    clock = clock or SystemClock()

    if config.MOCK_GOOGLE_APIS:
        from .backends.mock import MockGoogleBackend

        logger.warning("MOCK_GOOGLE_APIS is set: using in-memory directory and IAM backend")
        backend = MockGoogleBackend()
        resolver, reader, writer = backend, backend, backend
    else:
        from .backends.google import GoogleDirectoryResolver, GoogleIamBackend

        resolver = GoogleDirectoryResolver(config.GSUITE_ADMIN)
        reader = writer = GoogleIamBackend()

    authorizer = Authorizer(policy, resolver, settings)
    grant_manager = ConditionalGrantManager(reader, writer, settings, clock=clock)
    return EscalationController(
        authorizer=authorizer,
        gate=ApprovalGate(authorizer, grant_manager),
        clock=clock,
    )


_controller: Optional[EscalationController] = None


def get_controller() -> EscalationController:
    """Lazily build the process-wide controller."""
    global _controller
    if _controller is None:
        _controller = build_controller()
    return _controller


mcp = FastMCP(SERVER_NAME)


@mcp.tool()
def list_escalation_options() -> str:
    """
    List the roles, resources and groups the escalation policy mentions.

    Returns:
        JSON object with sorted `roles`, `resources` and `groups`
    """
    return json.dumps(get_controller().list_options(), indent=2)


@mcp.tool()
async def request_escalation(requestor: str, role: str, resource: str, reason: str) -> str:
    """
    Request a time-bound IAM role on a resource.

    The requestor's directory groups are looked up and matched against the
    escalation policy. On success the returned payload must be reviewed by
    a different identity with review_escalation.

    Args:
        requestor: Requestor email
        role: IAM role, e.g. roles/cloudsql.admin
        resource: projects/<id> or organizations/<id>
        reason: Why the access is needed

    Returns:
        JSON with the pending approval payload

    Raises:
        ToolError: If the request is not authorized
    """
    try:
        approval = await get_controller().request(requestor, role, resource, reason)
    except EscalationError as e:
        raise ToolError(f"couldn't handle escalation request: {e}")

    return json.dumps(
        {
            "message": (
                f"{requestor} requests {role} on {resource}. "
                "Approve or deny with review_escalation."
            ),
            "payload": approval.to_json(),
        },
        indent=2,
    )


@mcp.tool()
async def review_escalation(payload: str, approver: str, approve: bool) -> str:
    """
    Approve or deny a pending escalation.

    The embedded request is authorized again, the approver must be in the
    trusted domain and cannot be the requestor. Approval binds the role
    with an expiry condition.

    Args:
        payload: Payload returned by request_escalation
        approver: Approver email
        approve: True to approve, False to deny

    Returns:
        Outcome message

    Raises:
        ToolError: If the approval is rejected or the grant fails
    """
    try:
        return await get_controller().review(payload, approver, approve)
    except EscalationError as e:
        raise ToolError(f"couldn't grant iam: {e}")
    except Exception as e:
        logger.error(f"Unexpected error reviewing escalation: {e}")
        raise ToolError(f"couldn't grant iam: {e}")


def configure_logging(config: type = Config) -> None:
    """Configure loguru console and file sinks."""
    logger.remove()  # Remove default handler

    if config.LOG_JSON:
        logger.add(sys.stderr, serialize=True, level=config.LOG_LEVEL)
    else:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
            level=config.LOG_LEVEL,
        )

    logger.add(
        config.LOG_FILE,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        level="DEBUG",
    )


def main():
    """
    Main entry point for the escalation server.

    Configures loguru, wires the controller eagerly so configuration errors
    surface at startup, then serves over HTTP/SSE.
    """
    configure_logging()
    logger.info(f"Starting {SERVER_NAME}...")

    try:
        get_controller()
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        mcp.run(transport="sse", host=HOST, port=PORT)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
