"""
Safety Guardian: gates every outbound write before it leaves the process.

In dry-run mode no write of any kind is allowed. In live mode only creates
(POST) and deletes (DELETE) against the policy collections this kit manages
are allowed; updates (PUT/PATCH) and destructive device actions never are.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("hydration_kit.safety")

# ─── HTTP Methods ───────────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD", "OPTIONS"}
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Existing objects are never modified.
UPDATE_METHODS = {"PUT", "PATCH"}

# Collections the kit creates in and removes from.
MANAGED_COLLECTIONS = [
    re.compile(r"/groups(/[^/]+)?$"),
    re.compile(r"/identity/conditionalAccess/policies(/[^/]+)?$"),
    re.compile(r"/deviceManagement/[A-Za-z]+(/[^/]+)?$"),
    re.compile(r"/deviceManagement/notificationMessageTemplates/[^/]+/localizedNotificationMessages$"),
    re.compile(r"/deviceAppManagement/[A-Za-z]+ManagedAppProtections(/[^/]+)?$"),
    re.compile(r"/deviceAppManagement/[A-Za-z]+ManagedAppProtections/[^/]+/targetApps$"),
]

# Explicitly blocked action URLs on any method
BLOCKED_URL_PATTERNS = [
    re.compile(r"/assign$", re.IGNORECASE),
    re.compile(r"/wipe$", re.IGNORECASE),
    re.compile(r"/retire$", re.IGNORECASE),
    re.compile(r"/resetPasscode$", re.IGNORECASE),
    re.compile(r"/remoteLock$", re.IGNORECASE),
    re.compile(r"/cleanWindowsDevice$", re.IGNORECASE),
    re.compile(r"/resetPassword$", re.IGNORECASE),
    re.compile(r"/revokeSignInSessions$", re.IGNORECASE),
    re.compile(r"/setMobileDeviceManagementAuthority$", re.IGNORECASE),
    re.compile(r"/managedDevices(/|$)", re.IGNORECASE),
    re.compile(r"/users(/|$)", re.IGNORECASE),
]


class SafetyViolation(Exception):
    """Raised when a request falls outside what the current run may do."""
    pass


class SafetyGuardian:
    """
    Validates every outbound HTTP request against the run mode.
    Maintains an audit log of all checks, writes and violations.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.violations: list[dict] = []
        self.writes_allowed: int = 0
        self.checks_performed: int = 0
        self.started_at: str = datetime.now(timezone.utc).isoformat()

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate a request for the current mode.
        Returns True if allowed, raises SafetyViolation if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper in READ_METHODS:
            return True

        path = url.split("?", 1)[0]

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(path):
                self._record_violation(method_upper, url, "Blocked action URL")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Blocked action URL: {method_upper} {url}"
                )

        if self.dry_run and method_upper in WRITE_METHODS:
            self._record_violation(method_upper, url, "Write attempted during dry run")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Dry run forbids writes: {method_upper} {url}"
            )

        if method_upper in UPDATE_METHODS:
            self._record_violation(method_upper, url, "Update of existing object blocked")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Updates are never issued: {method_upper} {url}"
            )

        if method_upper in WRITE_METHODS:
            if any(p.search(path) for p in MANAGED_COLLECTIONS):
                self.writes_allowed += 1
                logger.debug(f"Write allowed: {method_upper} {url}")
                return True
            self._record_violation(method_upper, url, "Write outside managed collections")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write outside managed collections: {method_upper} {url}"
            )

        self._record_violation(method_upper, url, "Unknown HTTP method")
        raise SafetyViolation(f"SAFETY VIOLATION: Unknown method: {method_upper} {url}")

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        violation = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the full safety audit record."""
        return {
            "safety_guardian": {
                "mode": "DRY-RUN" if self.dry_run else "LIVE",
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "writes_allowed": self.writes_allowed,
                "violations_detected": len(self.violations),
                "violations": self.violations,
                "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
            }
        }

    def print_banner(self):
        """Print the run-mode banner."""
        print("=" * 75)
        if self.dry_run:
            print("  DRY RUN (WhatIf) -- NO CHANGES WILL BE MADE")
            print("  * Every create/delete decision is evaluated and reported")
            print("  * Safety Guardian blocks all writes at the HTTP layer")
        else:
            print("  LIVE RUN -- OBJECTS WILL BE CREATED OR REMOVED")
            print("  * Existing objects are never modified")
            print("  * Only objects marked as imported by this kit are ever deleted")
            print("  * Conditional access policies are always created disabled")
        print("=" * 75)
