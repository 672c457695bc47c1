"""
Completion callbacks.

Every job ends with exactly one POST to the configured callback URL. The body
is the JSON-serialized WebhookPayload; when a shared secret is configured the
``x-webhook-signature`` header carries the HMAC of those exact bytes, and
when it is not the header is left off entirely.

How a callback is delivered is a strategy object. The default posts once and
logs failures; a deployment that needs retries supplies its own strategy.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

import httpx

from .errors import WebhookDeliveryError
from .models import WebhookPayload
from .signing import SIGNATURE_HEADER, sign

logger = logging.getLogger(__name__)


class DeliveryStrategy(Protocol):
    def deliver(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        ...


def post_webhook(client: httpx.Client, url: str, body: bytes, headers: Dict[str, str]) -> httpx.Response:
    """
    POST a callback body once.

    Raises:
        WebhookDeliveryError: On transport errors or a non-2xx response
    """
    try:
        response = client.post(url, content=body, headers=headers)
    except httpx.HTTPError as exc:
        raise WebhookDeliveryError(f"Webhook POST to {url} failed: {exc}") from exc
    if response.is_error:
        raise WebhookDeliveryError(f"Webhook POST to {url} returned {response.status_code}")
    return response


class FireAndForgetDelivery:
    """Single attempt, no retry; failures are logged and dropped."""

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def deliver(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        try:
            response = post_webhook(self._client, url, body, headers)
        except WebhookDeliveryError as exc:
            logger.error(f"Callback delivery failed: {exc}")
            return
        logger.info(f"Callback delivered to {url} ({response.status_code})")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class WebhookNotifier:
    """Builds, signs and hands off completion notifications."""

    def __init__(self, callback_url: str, secret: Optional[str], delivery: DeliveryStrategy) -> None:
        self.callback_url = callback_url
        self.secret = secret or None
        self.delivery = delivery
        if self.secret is None:
            logger.warning("No webhook secret configured; callbacks will be sent unsigned")

    def build_headers(self, body: bytes) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign(body, self.secret)
        return headers

    def notify(self, payload: WebhookPayload) -> None:
        """
        Send one notification.

        Note:
            Nothing raised by the delivery strategy escapes; a broken callback
            must not take down the worker that finished the job.
        """
        body = payload.to_bytes()
        headers = self.build_headers(body)
        try:
            self.delivery.deliver(self.callback_url, body, headers)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"Delivery strategy raised for job {payload.job_id}: {exc}")

    def notify_success(self, job_id: str, job_type: str, url: str) -> None:
        self.notify(WebhookPayload(success=True, job_id=job_id, type=job_type, url=url))

    def notify_failure(self, job_id: str, job_type: Optional[str], error: str) -> None:
        self.notify(WebhookPayload(success=False, job_id=job_id, type=job_type, error=error))
