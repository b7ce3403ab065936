"""Client-side payment status polling.

After checkout the storefront asks the API every few seconds whether the
payment went through, and gives up after a fixed time so the customer can be
sent to support instead of waiting forever. Each poll is an asyncio task owned
by the :class:`PollHandle` returned from :meth:`PaymentStatusPoller.start`.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

VERIFY_PATH = "/api/payments/verify-payment-link"


class PollOutcome(str, Enum):
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    reference_id: str
    attempts: int = 0
    order_id: int | None = None
    order_number: str | None = None
    message: str | None = None


StatusCheck = Callable[[str], Awaitable[dict[str, Any]]]


def _result_from_status(reference_id: str, payload: dict[str, Any], attempts: int) -> PollResult | None:
    """Map a verify-payment-link response to a final result, or None to keep polling."""
    message = payload.get("message")
    if payload.get("success"):
        return PollResult(
            PollOutcome.PAID,
            reference_id,
            attempts=attempts,
            order_id=payload.get("order_id"),
            order_number=payload.get("order_number"),
            message=message,
        )
    if payload.get("expired"):
        return PollResult(PollOutcome.EXPIRED, reference_id, attempts=attempts, message=message)
    if payload.get("failed"):
        return PollResult(PollOutcome.FAILED, reference_id, attempts=attempts, message=message)
    return None


class PollHandle:
    def __init__(self, reference_id: str, task: asyncio.Task):
        self.reference_id = reference_id
        self._task = task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Stop polling. Safe to call more than once or after completion."""
        if not self._task.done():
            logger.info("Polling for %s cancelled", self.reference_id)
        self._task.cancel()

    async def wait(self) -> PollResult:
        await asyncio.wait({self._task})
        if self._task.cancelled():
            return PollResult(PollOutcome.CANCELLED, self.reference_id)
        return self._task.result()


class PaymentStatusPoller:
    def __init__(
        self,
        check: StatusCheck,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ):
        self._check = check
        self.interval_seconds = (
            settings.PAYMENT_POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.timeout_seconds = (
            settings.PAYMENT_POLL_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must not be negative")

    def start(self, reference_id: str) -> PollHandle:
        """Begin polling ``reference_id`` on the running loop; the first check runs immediately."""
        task = asyncio.get_running_loop().create_task(self._run(reference_id))
        return PollHandle(reference_id, task)

    async def poll(self, reference_id: str) -> PollResult:
        return await self.start(reference_id).wait()

    async def _run(self, reference_id: str) -> PollResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        attempts = 0
        while True:
            attempts += 1
            try:
                payload = await self._check(reference_id)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Status check %s for %s failed: %s", attempts, reference_id, exc)
            else:
                if not isinstance(payload, dict):
                    logger.warning("Status check %s for %s returned %r", attempts, reference_id, payload)
                    result = None
                else:
                    result = _result_from_status(reference_id, payload, attempts)
                if result is not None:
                    logger.info("Polling for %s finished: %s", reference_id, result.outcome.value)
                    return result

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info("Polling for %s timed out after %s checks", reference_id, attempts)
                return PollResult(
                    PollOutcome.TIMED_OUT,
                    reference_id,
                    attempts=attempts,
                    message="Verification failed. Contact support if you were charged.",
                )
            await asyncio.sleep(min(self.interval_seconds, remaining))


class HttpStatusCheck:
    """Default check: asks the API's verify-payment-link endpoint as the logged-in customer."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._timeout = timeout
        self._transport = transport

    async def __call__(self, reference_id: str) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.post(
                VERIFY_PATH,
                json={"payment_link_id": reference_id, "manual_verification": True},
            )
            response.raise_for_status()
            try:
                payload = response.json()
            except ValueError as exc:
                raise httpx.DecodingError("Status response is not JSON", request=response.request) from exc
            if not isinstance(payload, dict):
                raise httpx.DecodingError("Status response is not a JSON object", request=response.request)
            return payload
