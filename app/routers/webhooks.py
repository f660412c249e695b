"""TestBox webhook routes."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response

from app.config import ProvisioningSettings
from app.provisioning import provision_trial, use_case_url
from testbox_sdk import BulkUseCaseRequest, Integration, TrialRequest, UseCaseRequest
from testbox_sdk.dependencies import get_integration, require_webhook
from testbox_sdk.exceptions import ServiceResponseError, ServiceUnavailableError

router = APIRouter(prefix="/api/testbox", tags=["testbox"])
logger = structlog.get_logger(__name__)


def get_provisioning_settings(request: Request) -> ProvisioningSettings:
    """Return provisioning settings stored on the application."""
    return request.app.state.settings.provisioning


IntegrationDep = Annotated[Integration, Depends(get_integration)]
ProvisioningDep = Annotated[ProvisioningSettings, Depends(get_provisioning_settings)]
TrialWebhook = Annotated[TrialRequest, Depends(require_webhook(TrialRequest))]
UseCaseWebhook = Annotated[UseCaseRequest, Depends(require_webhook(UseCaseRequest))]
BulkUseCaseWebhook = Annotated[BulkUseCaseRequest, Depends(require_webhook(BulkUseCaseRequest))]


@router.post("/trial")
async def create_trial(
    webhook: TrialWebhook, integration: IntegrationDep, settings: ProvisioningDep
) -> Response:
    """Provision a trial and hand it back to TestBox in the response."""
    trial = provision_trial(webhook.trial_id, settings)
    return integration.fulfill_trial(webhook, trial)


@router.post("/async_trial")
async def create_trial_async(
    webhook: TrialWebhook,
    integration: IntegrationDep,
    settings: ProvisioningDep,
    background_tasks: BackgroundTasks,
) -> Response:
    """Acknowledge now and deliver the trial through the success callback."""
    background_tasks.add_task(deliver_trial, integration, webhook, settings)
    return Response(status_code=200)


@router.post("/use_case")
async def create_use_case(
    webhook: UseCaseWebhook, integration: IntegrationDep, settings: ProvisioningDep
) -> Response:
    """Return the demo URL for one use case."""
    url = use_case_url(webhook.use_case_type, webhook.trial_data, settings)
    return integration.fulfill_use_case(webhook, url)


@router.post("/bulk_use_case")
async def create_use_cases(
    webhook: BulkUseCaseWebhook,
    integration: IntegrationDep,
    settings: ProvisioningDep,
    background_tasks: BackgroundTasks,
) -> Response:
    """Acknowledge now and deliver every requested demo URL through the callback."""
    background_tasks.add_task(deliver_use_cases, integration, webhook, settings)
    return Response(status_code=200)


async def deliver_trial(
    integration: Integration, webhook: TrialRequest, settings: ProvisioningSettings
) -> None:
    """Deliver a provisioned trial, reporting the failure if delivery fails."""
    trial = provision_trial(webhook.trial_id, settings)
    try:
        await integration.fulfill_trial_async(webhook, trial)
    except (ServiceUnavailableError, ServiceResponseError) as exc:
        logger.warning("trial_delivery_failed", trial_id=webhook.trial_id, error=str(exc))
        await report_failure(integration, webhook, "trial_delivery_failed")


async def deliver_use_cases(
    integration: Integration, webhook: BulkUseCaseRequest, settings: ProvisioningSettings
) -> None:
    """Deliver demo URLs for every requested use case."""
    urls = {
        use_case_type: use_case_url(use_case_type, webhook.trial_data, settings)
        for use_case_type in webhook.use_case_types
    }
    try:
        await integration.fulfill_use_cases_async(webhook, urls)
    except (ServiceUnavailableError, ServiceResponseError) as exc:
        logger.warning("use_case_delivery_failed", trial_id=webhook.trial_id, error=str(exc))
        await report_failure(integration, webhook, "use_case_delivery_failed")


async def report_failure(
    integration: Integration, webhook: TrialRequest | BulkUseCaseRequest, error: str
) -> None:
    """Tell TestBox the request could not be fulfilled."""
    try:
        await integration.report_failure_async(webhook, {"error": error})
    except (ServiceUnavailableError, ServiceResponseError) as exc:
        logger.error("testbox_failure_report_failed", trial_id=webhook.trial_id, error=str(exc))
