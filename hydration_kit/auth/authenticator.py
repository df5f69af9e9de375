"""
Token acquisition for Microsoft Graph through MSAL.

App-only runs authenticate with a PFX certificate (stored base64-encoded on
disk) or a client secret taken from the environment; interactive runs use
the device code flow.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, CertificateAuth, REQUIRED_PERMISSIONS

logger = logging.getLogger("hydration_kit.auth")

APP_SCOPES = ["https://graph.microsoft.com/.default"]
AUTHORITY = "https://login.microsoftonline.com/{tenant}"
CERT_PASSWORD_ENV = "HYDRATION_CERT_PASSWORD"


class AuthenticationError(Exception):
    """No usable access token could be obtained."""


def certificate_credential(path: Path, password: str) -> dict:
    """
    Decode a base64 PFX file into the thumbprint/private_key credential
    MSAL expects for certificate client credentials.
    """
    try:
        pfx = base64.b64decode(path.read_text().strip())
        key, cert, _ = pkcs12.load_key_and_certificates(pfx, password.encode("utf-8") if password else None)
    except (ValueError, TypeError, OSError) as e:
        raise AuthenticationError(f"Failed to load certificate: {e}") from e
    if key is None or cert is None:
        raise AuthenticationError("Failed to load certificate: PFX lacks a private key or certificate")

    thumbprint = cert.fingerprint(SHA1()).hex()
    logger.info(f"Certificate loaded (thumbprint {thumbprint})")
    return {
        "thumbprint": thumbprint,
        "private_key": key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()).decode("utf-8"),
    }


class Authenticator:
    """Acquires one access token for the configured auth mode."""

    def __init__(self, config: AuthConfig):
        self.config = config
        self._access_token: Optional[str] = None
        self._flows: dict[str, Callable[[], str]] = {
            "certificate": self._with_certificate,
            "client_secret": self._with_client_secret,
            "delegated": self._with_device_code,
        }

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    async def acquire_token(self) -> str:
        flow = self._flows.get(self.config.mode)
        if flow is None:
            raise AuthenticationError(
                f"Unknown auth mode: {self.config.mode} (expected one of {', '.join(self._flows)})"
            )
        token = flow()
        self._access_token = token
        return token

    # --- app-only ---

    def _with_certificate(self) -> str:
        settings = self._section("certificate", "Certificate")
        path = Path(settings.certificate_path)
        if not path.is_file():
            raise AuthenticationError(f"Certificate file not found: {path}")

        credential = certificate_credential(path, self._certificate_password(settings))
        expected = settings.thumbprint.replace(":", "").replace(" ", "").lower()
        if expected and expected != credential["thumbprint"]:
            raise AuthenticationError(
                f"Certificate thumbprint {credential['thumbprint']} does not match configured {settings.thumbprint}"
            )
        logger.info("Requesting app-only token with certificate credentials")
        return self._client_credentials(settings.tenant_id, settings.client_id, credential, "Certificate")

    def _with_client_secret(self) -> str:
        settings = self._section("client_secret", "Client secret")
        secret = os.environ.get(settings.secret_env, "")
        if not secret:
            raise AuthenticationError(
                f"Client secret not found in environment variable {settings.secret_env}"
            )
        logger.info(f"Requesting app-only token with client secret from {settings.secret_env}")
        return self._client_credentials(settings.tenant_id, settings.client_id, secret, "Client secret")

    def _client_credentials(self, tenant_id: str, client_id: str, credential, label: str) -> str:
        app = msal.ConfidentialClientApplication(
            client_id=client_id,
            authority=AUTHORITY.format(tenant=tenant_id),
            client_credential=credential,
        )
        return _token_or_raise(app.acquire_token_for_client(scopes=APP_SCOPES), label)

    @staticmethod
    def _certificate_password(settings: CertificateAuth) -> str:
        return (
            settings.certificate_password
            or os.environ.get(CERT_PASSWORD_ENV, "")
            or getpass.getpass("Enter the certificate password: ")
        )

    # --- delegated ---

    def _with_device_code(self) -> str:
        settings = self._section("delegated", "Delegated")
        app = msal.PublicClientApplication(
            client_id=settings.client_id,
            authority=AUTHORITY.format(tenant=settings.tenant_id),
        )
        flow = app.initiate_device_flow(scopes=settings.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")

        return _token_or_raise(app.acquire_token_by_device_flow(flow), "Delegated")

    def _section(self, attr: str, label: str):
        settings = getattr(self.config, attr)
        if not settings:
            raise AuthenticationError(f"{label} auth config not provided.")
        return settings

    @staticmethod
    def list_required_permissions() -> dict[str, str]:
        """Graph application permissions the hydration run needs, with the reason for each."""
        return REQUIRED_PERMISSIONS


def _token_or_raise(result: dict, label: str) -> str:
    token = result.get("access_token")
    if token:
        logger.info(f"{label} authentication successful")
        return token
    reason = result.get("error_description") or result.get("error") or "Unknown"
    raise AuthenticationError(f"{label} auth failed: {reason}")
