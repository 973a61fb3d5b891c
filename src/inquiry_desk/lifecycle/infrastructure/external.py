"""
Lifecycle External Service Integrations
=======================================

- Escalation webhook notifications (Slack-compatible blocks)
- APScheduler job for the periodic sweep
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from inquiry_desk.lifecycle.domain import EscalationNotice
from inquiry_desk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class EscalationNotifier:
    """
    Webhook client for escalation, missed and backlog notifications.

    Notifications are best effort: a failed delivery is logged and counted
    by the circuit breaker, never raised to the caller. Callers send only
    after their transaction has committed.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        channel: str = "#inquiry-escalations",
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = client

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, notice: EscalationNotice) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        if notice.missed:
            header_text = "Inquiry Missed"
            outcome = "Gave up after repeated escalations"
        elif notice.new_operator:
            header_text = "Inquiry Escalated"
            outcome = f"Reassigned to {notice.new_operator}"
        else:
            header_text = "Inquiry Escalated"
            outcome = "Waiting for an available operator"

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header_text, "emoji": True}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Inquiry:*\n{notice.title}"},
                    {"type": "mrkdwn", "text": f"*Reference:*\n{notice.external_reference}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{notice.priority.title()}"},
                    {"type": "mrkdwn", "text": f"*Escalations:*\n{notice.escalation_count}"},
                    {"type": "mrkdwn", "text": f"*Previous operator:*\n{notice.previous_operator or 'none'}"},
                    {"type": "mrkdwn", "text": f"*Outcome:*\n{outcome}"},
                ]
            },
        ]

        return {"channel": self._channel, "blocks": blocks}

    def _build_backlog_message(self, waiting: int) -> Dict[str, Any]:
        return {
            "channel": self._channel,
            "blocks": [
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": f"*{waiting}* inquiries are waiting for an active operator."
                    }
                }
            ]
        }

    async def _post(self, message: Dict[str, Any], context: Dict[str, Any]) -> bool:
        if not self._webhook_url:
            logger.debug("Escalation webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping escalation notification", extra=context)
            return False

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info("Escalation notification sent", extra=context)
                    return True

                logger.warning(
                    "Escalation webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1, **context}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Escalation notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, **context}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return False

    async def notify(self, notices: List[EscalationNotice]) -> int:
        """
        Send one message per notice.

        Returns:
            Number of notifications delivered
        """
        sent = 0
        for notice in notices:
            context = {"inquiry_id": notice.inquiry_id, "missed": notice.missed}
            if await self._post(self._build_message(notice), context):
                sent += 1
        return sent

    async def notify_backlog(self, waiting: int) -> bool:
        if waiting <= 0:
            return False
        return await self._post(self._build_backlog_message(waiting), {"waiting": waiting})

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SweepScheduler:
    """
    Wrapper for APScheduler for the background escalation sweep.

    Manages the lifecycle of the scheduler and jobs.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[None]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Sweep scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="escalation_sweep",
            name="Escalation Sweep Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Sweep scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Sweep scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
