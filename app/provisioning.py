"""Stand-in account provisioning for the example partner application."""

from __future__ import annotations

import secrets

from app.config import ProvisioningSettings
from testbox_sdk import Trial, UseCaseType


def _subdomain(trial_id: str) -> str:
    return f"tbx-{trial_id[:8].lower()}"


def provision_trial(trial_id: str, settings: ProvisioningSettings) -> Trial:
    """Create the account bundle for a new TestBox trial."""
    subdomain = _subdomain(trial_id)
    trial = (
        Trial(strict=True)
        .set_email(f"admin+{subdomain}@{settings.email_domain}")
        .set_password(secrets.token_urlsafe(16))
        .set_subdomain(subdomain)
        .set_api_key(f"sk_{secrets.token_hex(16)}")
        .set_jwt_secret(secrets.token_urlsafe(32))
    )
    for index in range(settings.users_per_trial):
        trial.add_user(
            {
                "email": f"user{index + 1}+{subdomain}@{settings.email_domain}",
                "password": secrets.token_urlsafe(16),
            }
        )
    return trial


def use_case_url(use_case_type: UseCaseType, trial: Trial, settings: ProvisioningSettings) -> str:
    """Return the demo page for a use case inside a provisioned trial."""
    subdomain = (trial.start_url_context or {}).get("subdomain", "demo")
    return f"{settings.demo_base_url}/{subdomain}/demo/{use_case_type.value}"
