"""
Configuration module for the Intune Hydration Kit.
Defines all tunable parameters, API endpoints, and operational settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Falls back to env, then prompt
    thumbprint: str = ""

@dataclass
class ClientSecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    secret_env: str = "HYDRATION_CLIENT_SECRET"

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "DeviceManagementConfiguration.ReadWrite.All",
        "DeviceManagementServiceConfig.ReadWrite.All",
        "DeviceManagementApps.ReadWrite.All",
        "Group.ReadWrite.All",
        "Policy.ReadWrite.ConditionalAccess",
        "Policy.Read.All",
        "Organization.Read.All",
    ])

@dataclass
class AuthConfig:
    """Authentication configuration for one of the certificate, client_secret or delegated modes."""
    mode: str = "certificate"
    certificate: Optional[CertificateAuth] = None
    client_secret: Optional[ClientSecretAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_BETA_VERSION = "beta"

# Throttling. Requests are single-flight; the delay is applied between
# object-level calls inside import loops.
MAX_CONCURRENT_REQUESTS = 1
API_CALL_DELAY_SECONDS = 0.1
MAX_RETRIES = 5
INITIAL_BACKOFF_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 120.0
BACKOFF_MULTIPLIER = 2.0

# Pagination
DEFAULT_PAGE_SIZE = 100           # deviceManagement collections cap $top lower than 999
MAX_PAGES_PER_ENDPOINT = 10000   # Safety cap on pagination loops


# ─── Provenance ─────────────────────────────────────────────────────────────

MARKER_TEXT = "Imported by Intune-Hydration-Kit"
# Objects created by early releases carry the spaced spelling.
LEGACY_MARKER_TEXTS = ("Imported by Intune Hydration Kit",)


# ─── Import Selection ───────────────────────────────────────────────────────

IMPORTER_KEYS = [
    "dynamic_groups",
    "device_filters",
    "openintune_baseline",
    "compliance_templates",
    "notification_templates",
    "app_protection",
    "enrollment_profiles",
    "conditional_access",
]

@dataclass
class ImportConfig:
    """Which importers run. Keys follow IMPORTER_KEYS."""
    dynamic_groups: bool = True
    device_filters: bool = True
    openintune_baseline: bool = True
    compliance_templates: bool = True
    notification_templates: bool = True
    app_protection: bool = True
    enrollment_profiles: bool = True
    conditional_access: bool = True

    def enabled(self, key: str) -> bool:
        return bool(getattr(self, key, False))

    def only(self, keys: list[str]):
        for k in IMPORTER_KEYS:
            setattr(self, k, k in keys)

    def skip(self, keys: list[str]):
        for k in keys:
            if hasattr(self, k):
                setattr(self, k, False)


@dataclass
class RunOptions:
    """Behavioural switches for one invocation."""
    dry_run: bool = False
    create: bool = True
    remove: bool = False
    verbose: bool = False
    skip_prerequisites: bool = False
    call_delay: float = API_CALL_DELAY_SECONDS

    @property
    def mode(self) -> str:
        return "remove" if self.remove else "create"


# ─── Paths & Output ─────────────────────────────────────────────────────────

DEFAULT_TEMPLATE_ROOT = Path(__file__).parent / "data" / "templates"

@dataclass
class PathConfig:
    """Template source locations."""
    templates: str = ""
    baseline: str = ""

    @property
    def template_root(self) -> Path:
        return Path(self.templates).expanduser() if self.templates else DEFAULT_TEMPLATE_ROOT

    @property
    def baseline_root(self) -> Path:
        if self.baseline:
            return Path(self.baseline).expanduser()
        return self.template_root / "OpenIntuneBaseline"


@dataclass
class OutputConfig:
    """Output directory and format settings."""
    base_dir: str = ""
    formats: list[str] = field(default_factory=lambda: ["json", "csv", "markdown"])

    def __post_init__(self):
        if not self.base_dir:
            self.base_dir = os.path.join(os.getcwd(), "hydration_output")

    @property
    def run_dir(self) -> Path:
        return Path(self.base_dir)

    @property
    def reports_dir(self) -> Path:
        return self.run_dir / "reports"

    @property
    def logs_dir(self) -> Path:
        return self.run_dir / "logs"

    def create_directories(self):
        for d in [self.reports_dir, self.logs_dir]:
            d.mkdir(parents=True, exist_ok=True)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class HydrationConfig:
    """Top-level configuration for one hydration run."""
    tenant_id: str = ""
    tenant_name: str = ""
    auth: AuthConfig = field(default_factory=AuthConfig)
    options: RunOptions = field(default_factory=RunOptions)
    imports: ImportConfig = field(default_factory=ImportConfig)
    paths: PathConfig = field(default_factory=PathConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "HydrationConfig":
        """Load settings from a JSON file. Unknown keys are ignored."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()

        tenant = data.get("tenant", {})
        config.tenant_id = tenant.get("tenant_id", "")
        config.tenant_name = tenant.get("tenant_name", "")

        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            client_id = auth_data.get("client_id", "")
            if config.auth.mode == "certificate":
                config.auth.certificate = CertificateAuth(
                    tenant_id=config.tenant_id,
                    client_id=client_id,
                    certificate_path=auth_data.get("certificate_path", "./base64.txt"),
                    certificate_password=auth_data.get("certificate_password", ""),
                    thumbprint=auth_data.get("thumbprint", ""),
                )
            elif config.auth.mode == "client_secret":
                config.auth.client_secret = ClientSecretAuth(
                    tenant_id=config.tenant_id,
                    client_id=client_id,
                    secret_env=auth_data.get("secret_env", "HYDRATION_CLIENT_SECRET"),
                )
            elif config.auth.mode == "delegated":
                config.auth.delegated = DelegatedAuth(
                    tenant_id=config.tenant_id,
                    client_id=client_id,
                )

        for section, target in (
            ("options", config.options),
            ("imports", config.imports),
            ("paths", config.paths),
            ("output", config.output),
        ):
            for k, v in data.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
        return config


# ─── Required Graph API Permissions (application) ──────────────────────────

REQUIRED_PERMISSIONS = {
    "DeviceManagementConfiguration.ReadWrite.All": "Create compliance, baseline and settings catalog policies",
    "DeviceManagementServiceConfig.ReadWrite.All": "Create Autopilot profiles, ESP and notification templates",
    "DeviceManagementApps.ReadWrite.All": "Create app protection policies",
    "DeviceManagementScripts.ReadWrite.All": "Create custom compliance detection scripts",
    "Group.ReadWrite.All": "Create dynamic device groups",
    "Policy.ReadWrite.ConditionalAccess": "Create conditional access policies (always disabled)",
    "Policy.Read.All": "Read existing conditional access policies",
    "Organization.Read.All": "Read tenant name and licences for the prerequisite check",
}
