"""
Continuation dispatch: how a paused job triggers its next invocation.

The runner owns delivery. A dispatcher either hands the event back to the
in-process scheduler or POSTs it to the service's own invoke endpoint (so
another worker behind the load balancer can pick it up).
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict
import httpx
from core.exceptions import ContinuationError
import logging

logger = logging.getLogger(__name__)


class ContinuationDispatcher(ABC):
    """Fire-and-forget delivery of a job trigger event"""

    @abstractmethod
    async def dispatch(self, event: Dict[str, Any]) -> None:
        """Deliver the event or raise ContinuationError"""


class HTTPContinuationDispatcher(ContinuationDispatcher):
    """POST the event to /fcc/jobs/invoke, retrying with exponential backoff"""

    def __init__(
        self,
        url: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0
    ):
        self.url = url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    async def dispatch(self, event: Dict[str, Any]) -> None:
        job_id = event.get("jobId")
        last_exception = None

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        self.url,
                        json=event,
                        headers={"X-Request-ID": f"continuation-{job_id}-{attempt + 1}"},
                    )
                    response.raise_for_status()
                    logger.info(f"[{job_id}] Continuation accepted by {self.url} ({response.status_code})")
                    return
                except httpx.HTTPStatusError as e:
                    last_exception = e
                    if e.response.status_code < 500:
                        # The event itself was rejected; repeating it will not help
                        break
                except httpx.TransportError as e:
                    last_exception = e

                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"[{job_id}] Continuation POST failed: {str(last_exception)}. "
                        f"Retrying in {delay} seconds"
                    )
                    await asyncio.sleep(delay)

        raise ContinuationError(
            "Continuation could not be delivered",
            context={"job_id": job_id, "url": self.url, "max_retries": self.max_retries},
            original_exception=last_exception
        )


class SchedulerContinuationDispatcher(ContinuationDispatcher):
    """Enqueue the event as a one-shot job on the in-process scheduler"""

    def __init__(self, scheduler):
        self.scheduler = scheduler

    async def dispatch(self, event: Dict[str, Any]) -> None:
        try:
            self.scheduler.enqueue_invocation(event)
        except Exception as e:
            raise ContinuationError(
                "Continuation could not be scheduled",
                context={"job_id": event.get("jobId")},
                original_exception=e
            )
        logger.info(f"[{event.get('jobId')}] Continuation scheduled in-process")


def build_dispatcher(config, scheduler=None) -> ContinuationDispatcher:
    """Pick the continuation transport from settings (CONTINUATION_MODE)"""
    mode = config.CONTINUATION_MODE.lower()

    if mode == "http":
        return HTTPContinuationDispatcher(
            url=config.CONTINUATION_URL,
            max_retries=config.MAX_RETRIES,
            retry_delay=config.RETRY_DELAY,
        )

    if mode == "scheduler":
        if scheduler is None:
            raise ValueError("CONTINUATION_MODE=scheduler requires a running FCCImportScheduler")
        return SchedulerContinuationDispatcher(scheduler)

    raise ValueError(f"Unknown CONTINUATION_MODE: {config.CONTINUATION_MODE}")
