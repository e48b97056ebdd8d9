"""Centralized configuration for GCP Sudo."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_TRUE_VALUES = {"1", "t", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "f", "false", "no", "off"}


class Config:
    """
    GCP Sudo configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables. The escalation
    engine itself never reads this class; it receives an
    EscalationSettings value built from it.
    """

    @staticmethod
    def _parse_port(port_str: str) -> int:
        """Parse and validate port number from string."""
        try:
            port = int(port_str)
            if not (1 <= port <= 65535):
                raise ValueError(f"Port must be 1-65535, got {port}")
            return port
        except ValueError as e:
            raise ValueError(f"Invalid PORT environment variable: {e}")

    @staticmethod
    def _parse_bool(name: str, value: str) -> bool:
        """Parse a boolean flag the way strconv-style parsers accept it."""
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid {name} environment variable: {value!r}")

    @staticmethod
    def _parse_number(name: str, value: str, kind=int):
        try:
            return kind(value)
        except ValueError as e:
            raise ValueError(f"Invalid {name} environment variable: {e}")

    # ========================================================================
    # Server Configuration
    # ========================================================================
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _parse_port.__func__(os.getenv("PORT", "8001"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "gcp_sudo.log")
    LOG_JSON: bool = _parse_bool.__func__("LOG_JSON", os.getenv("LOG_JSON", "false"))

    # ========================================================================
    # Escalation Configuration
    # ========================================================================
    VALID_DOMAIN: str = os.getenv("VALID_DOMAIN", "gmail.com")
    DURATION_OF_GRANT: int = _parse_number.__func__(
        "DURATION_OF_GRANT", os.getenv("DURATION_OF_GRANT", "2")
    )
    CONFLICT_RETRY_SECONDS: float = _parse_number.__func__(
        "CONFLICT_RETRY_SECONDS", os.getenv("CONFLICT_RETRY_SECONDS", "5"), float
    )
    GRANT_TIMEOUT_SECONDS: float = _parse_number.__func__(
        "GRANT_TIMEOUT_SECONDS", os.getenv("GRANT_TIMEOUT_SECONDS", "300"), float
    )

    # ========================================================================
    # Policy Configuration
    # ========================================================================
    POLICY_RULES: Optional[str] = os.getenv("POLICY_RULES") or None
    POLICY_RULES_PATH: str = os.getenv(
        "POLICY_RULES_PATH",
        str(Path(__file__).parent.parent.parent / "config" / "policy.yaml"),
    )

    # ========================================================================
    # Google Backend Configuration
    # ========================================================================
    GSUITE_ADMIN: str = os.getenv(
        "GSUITE_ADMIN_ACCOUNT_TO_IMPERSONATE", "admin@gmail.com"
    )
    MOCK_GOOGLE_APIS: bool = _parse_bool.__func__(
        "MOCK_GOOGLE_APIS", os.getenv("MOCK_GOOGLE_APIS", "false")
    )

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Checks:
        - VALID_DOMAIN is set and is a bare domain
        - DURATION_OF_GRANT is > 0
        - CONFLICT_RETRY_SECONDS is > 0
        - GRANT_TIMEOUT_SECONDS is >= 0
        - A policy source is available

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if not cls.VALID_DOMAIN:
            errors.append("VALID_DOMAIN must be set")
        elif "@" in cls.VALID_DOMAIN:
            errors.append(
                f"VALID_DOMAIN must be a bare domain without '@', got {cls.VALID_DOMAIN}"
            )

        if cls.DURATION_OF_GRANT <= 0:
            errors.append(f"DURATION_OF_GRANT must be > 0, got {cls.DURATION_OF_GRANT}")

        if cls.CONFLICT_RETRY_SECONDS <= 0:
            errors.append(
                f"CONFLICT_RETRY_SECONDS must be > 0, got {cls.CONFLICT_RETRY_SECONDS}"
            )

        if cls.GRANT_TIMEOUT_SECONDS < 0:
            errors.append(
                f"GRANT_TIMEOUT_SECONDS must be >= 0, got {cls.GRANT_TIMEOUT_SECONDS}"
            )

        if cls.POLICY_RULES is None and not Path(cls.POLICY_RULES_PATH).exists():
            errors.append(
                f"POLICY_RULES is unset and POLICY_RULES_PATH does not exist: "
                f"{cls.POLICY_RULES_PATH}"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True


@dataclass(frozen=True)
class EscalationSettings:
    """
    Immutable settings handed to the escalation engine.

    Attributes:
        trusted_domain: Email domain both requestors and approvers must belong to
        grant_duration_hours: Lifetime of a conditional binding
        conflict_retry_seconds: Fixed back-off between contention retries
        grant_timeout_seconds: Deadline for a single grant (None = caller-driven)
    """

    trusted_domain: str
    grant_duration_hours: int = 2
    conflict_retry_seconds: float = 5.0
    grant_timeout_seconds: Optional[float] = None

    @classmethod
    def from_config(cls, config: type = Config) -> "EscalationSettings":
        timeout = config.GRANT_TIMEOUT_SECONDS
        return cls(
            trusted_domain=config.VALID_DOMAIN,
            grant_duration_hours=config.DURATION_OF_GRANT,
            conflict_retry_seconds=config.CONFLICT_RETRY_SECONDS,
            grant_timeout_seconds=timeout if timeout > 0 else None,
        )

    @property
    def domain_suffix(self) -> str:
        return f"@{self.trusted_domain}"
