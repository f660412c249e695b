"""Synchronous and asynchronous completion of authenticated TestBox requests.

Synchronous helpers answer the inbound webhook with a 201 through a
:class:`~testbox_sdk.responders.Responder`. Asynchronous helpers POST to the
request's callback URLs with the verified bearer token; the inbound webhook is
expected to have been acknowledged already. Every helper asserts that the
request was authenticated before building anything.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from testbox_sdk.authentication import assert_authenticated
from testbox_sdk.client import ServiceClient
from testbox_sdk.responders import Responder
from testbox_sdk.trial import Trial
from testbox_sdk.types import UseCaseType, UseCaseUrls
from testbox_sdk.webhooks import BulkUseCaseRequest, CallbackRequest, TrialRequest, UseCaseRequest

TrialLike = Trial | Mapping[str, Any]

logger = structlog.get_logger(__name__)


def trial_body(trial: TrialLike, trial_id: str) -> dict[str, Any]:
    """Serialize a trial for TestBox, warning when it would not validate."""
    if isinstance(trial, Trial):
        if not trial.validate():
            logger.warning("testbox_trial_incomplete", trial_id=trial_id)
        return dict(trial.to_dict())
    return dict(trial)


def use_case_body(
    request: UseCaseRequest | BulkUseCaseRequest,
    urls: UseCaseUrls,
) -> dict[str, str]:
    """Build the ``{use_case_type: url}`` map for requested use cases."""
    if isinstance(request, UseCaseRequest):
        requested = {request.use_case_type}
    else:
        requested = set(request.use_case_types)

    body: dict[str, str] = {}
    for raw_type, url in urls.items():
        use_case_type = UseCaseType(raw_type)
        if use_case_type not in requested:
            raise ValueError(f"Use case {use_case_type.value!r} was not requested.")
        if not isinstance(url, str) or not url:
            raise ValueError(f"Use case {use_case_type.value!r} needs a non-empty URL.")
        body[use_case_type.value] = url
    if not body:
        raise ValueError("At least one use case URL is required.")
    return body


def fulfill_trial(request: TrialRequest, trial: TrialLike, responder: Responder) -> Any:
    """Answer a trial request synchronously with a 201 carrying the trial."""
    assert_authenticated(request)
    return responder.respond_success(trial_body(trial, request.trial_id))


def fulfill_use_case(request: UseCaseRequest, url: str, responder: Responder) -> Any:
    """Answer a use-case request synchronously with a 201 carrying its URL."""
    assert_authenticated(request)
    return responder.respond_success(use_case_body(request, {request.use_case_type: url}))


def fulfill_use_cases(
    request: BulkUseCaseRequest,
    urls: UseCaseUrls,
    responder: Responder,
) -> Any:
    """Answer a bulk use-case request synchronously with a 201 carrying its URLs."""
    assert_authenticated(request)
    return responder.respond_success(use_case_body(request, urls))


async def fulfill_trial_async(
    request: TrialRequest, trial: TrialLike, client: ServiceClient
) -> httpx.Response:
    """Deliver the trial to the request's success URL."""
    token = assert_authenticated(request)
    return await client.post_callback(
        request.success_url, token, trial_body(trial, request.trial_id)
    )


async def fulfill_use_case_async(
    request: UseCaseRequest, url: str, client: ServiceClient
) -> httpx.Response:
    """Deliver the use-case URL to the request's success URL."""
    token = assert_authenticated(request)
    body = use_case_body(request, {request.use_case_type: url})
    return await client.post_callback(request.success_url, token, body)


async def fulfill_use_cases_async(
    request: BulkUseCaseRequest,
    urls: UseCaseUrls,
    client: ServiceClient,
) -> httpx.Response:
    """Deliver the use-case URL map to the request's success URL."""
    token = assert_authenticated(request)
    return await client.post_callback(request.success_url, token, use_case_body(request, urls))


async def report_failure_async(
    request: CallbackRequest, data: Any, client: ServiceClient
) -> httpx.Response:
    """Report a failure to fulfill the request to its failure URL."""
    token = assert_authenticated(request)
    logger.info("testbox_failure_reported", trial_id=request.trial_id)
    return await client.post_callback(request.failure_url, token, data)
