"""
ESG Report Studio - Configuration Management
============================================
Settings for the API server and the admin console, with environment
variable overrides, plus the fixed vocabularies the services validate against.

Usage:
    from reportstudio.config import settings

    db_path = settings.db_path
    reminder_days = settings.default_reminder_days
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

CONSOLE_ORIGINS = frozenset(
    {
        "http://localhost:8501",
        "http://127.0.0.1:8501",
    }
)


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, "").split(",") if item.strip()]


@dataclass
class Settings:
    # Storage
    db_path: Path = field(default_factory=lambda: Path("data/reportstudio.db"))
    seed_reference_data: bool = True

    # Admin console
    api_base_url: str = "http://localhost:8000"
    api_timeout_seconds: int = 10

    # Deadline reminders
    default_reminder_days: list[int] = field(default_factory=lambda: [7, 3, 1])
    default_reminder_frequency_hours: int = 24

    # Overdue escalations
    default_escalation_days: list[int] = field(default_factory=lambda: [3, 7])

    # Request handling
    slow_request_threshold_ms: float = 1000.0
    max_request_bytes: int = 10_000_000

    # X-Forwarded-For is only read when the peer is listed here ("*" trusts any peer).
    trust_proxy_headers: bool = False
    trusted_proxy_ips: set[str] = field(default_factory=set)

    # The Streamlit console is the only browser client by default.
    cors_allow_origins: set[str] = field(default_factory=lambda: set(CONSOLE_ORIGINS))
    cors_allow_credentials: bool = False
    cors_max_age: int = 600

    debug_mode: bool = False

    def __post_init__(self):
        self._load_env_overrides()

    def _load_env_overrides(self):
        if db_path := os.environ.get("REPORTSTUDIO_DB_PATH"):
            self.db_path = Path(db_path)
        if _env_flag("REPORTSTUDIO_SEED") is False:
            self.seed_reference_data = False

        if api_url := os.environ.get("REPORTSTUDIO_API_URL"):
            self.api_base_url = api_url.rstrip("/")
        if api_timeout := os.environ.get("REPORTSTUDIO_API_TIMEOUT"):
            self.api_timeout_seconds = int(api_timeout)

        if reminder_days := _env_list("REMINDER_DAYS"):
            self.default_reminder_days = [int(d) for d in reminder_days]
        if frequency := os.environ.get("REMINDER_FREQUENCY_HOURS"):
            self.default_reminder_frequency_hours = int(frequency)
        if escalation_days := _env_list("ESCALATION_DAYS"):
            self.default_escalation_days = [int(d) for d in escalation_days]

        if slow_ms := os.environ.get("SLOW_REQUEST_MS"):
            self.slow_request_threshold_ms = float(slow_ms)
        if max_bytes := os.environ.get("MAX_REQUEST_BYTES"):
            self.max_request_bytes = int(max_bytes)

        if _env_flag("TRUST_PROXY_HEADERS"):
            self.trust_proxy_headers = True
        if proxies := _env_list("TRUSTED_PROXY_IPS"):
            self.trusted_proxy_ips = set(proxies)

        if origins := _env_list("CORS_ALLOW_ORIGINS"):
            if "*" in origins:
                logger.warning("CORS_ALLOW_ORIGINS contains '*'; any site may call the API")
            self.cors_allow_origins = set(origins)
        if cors_max_age := os.environ.get("CORS_MAX_AGE"):
            self.cors_max_age = int(cors_max_age)

        if _env_flag("DEBUG"):
            self.debug_mode = True

    @property
    def audit_signing_key(self) -> str | None:
        """HMAC key for audit exports (never stored in config)."""
        return os.environ.get("AUDIT_SIGNING_KEY")


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()


# Domain vocabularies
CATEGORIES = frozenset({"environmental", "social", "governance"})

REPORTING_MODES = frozenset({"simplified", "extended"})

REPORT_SCOPES = frozenset({"single-company", "group"})

PERIOD_STATUSES = frozenset({"draft", "active", "closed"})

COVERAGE_TYPES = frozenset({"full", "limited"})

INFORMATION_TYPES = ("fact", "estimate", "declaration", "plan")

COMPLETENESS_STATUSES = ("missing", "incomplete", "complete", "not applicable")

REVIEW_STATUSES = ("draft", "ready-for-review", "approved", "changes-requested")

MISSING_REASON_CATEGORIES = (
    "not-measured",
    "not-applicable",
    "unavailable-from-supplier",
    "data-quality-issue",
    "system-limitation",
    "other",
)

GAP_STATUSES = ("missing", "estimated", "provided")

ESTIMATE_TYPES = ("point", "range", "proxy-based", "extrapolated")

CONFIDENCE_LEVELS = frozenset({"low", "medium", "high"})

IMPACT_LEVELS = ("low", "medium", "high")

PLAN_STATUSES = frozenset({"planned", "in-progress", "completed", "cancelled"})

ACTION_STATUSES = frozenset({"pending", "in-progress", "completed", "cancelled"})

PRIORITIES = frozenset({"low", "medium", "high"})

VALIDATION_RULE_TYPES = ("non-negative", "required-unit", "allowed-units", "value-within-period")

ROLLOVER_RULE_TYPES = ("copy", "reset", "copy-as-draft")

APPROVAL_DECISIONS = frozenset({"approve", "reject"})

EXCEPTION_TYPES = ("missing-data", "estimated-data", "simplified-scope", "other")

EXCEPTION_STATUSES = ("pending", "accepted", "rejected")

CRITERION_TYPES = ("data-completeness", "evidence-quality", "process-control", "custom")

CATEGORY_LABELS = {
    "environmental": "Environmental",
    "social": "Social",
    "governance": "Governance",
}
