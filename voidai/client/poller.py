"""
Task Poller

Bounded, cancellable polling of a task status endpoint. The loop asks for the
status at a fixed interval until the task is terminal, the attempt budget runs
out or the caller cancels it. Timing out never changes the task itself; it may
still finish later through the provider callback.
"""

import logging
import threading
from traceback import format_exc
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import BaseModel

from voidai.models.shared import TaskStatus

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5
MAX_POLL_ATTEMPTS = 60
TIMEOUT_MESSAGE = "Still processing, check back later"


class PollResult(BaseModel):
    status: TaskStatus
    payload: Optional[Dict[str, Any]] = None
    attempts: int
    timed_out: bool = False
    cancelled: bool = False
    message: Optional[str] = None


class TaskPoller:
    """
    Polls `fetch` until it reports a terminal status.

    Args:
        fetch: Callable returning the task status payload with a `status` key
        interval: Seconds between attempts
        max_attempts: Attempt budget before reporting a timeout
    """

    def __init__(
        self,
        fetch: Callable[[], Dict[str, Any]],
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.fetch = fetch
        self.interval = interval
        self.max_attempts = max_attempts
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop the loop before its next attempt."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> PollResult:
        last_payload: Optional[Dict[str, Any]] = None

        for attempt in range(1, self.max_attempts + 1):
            if self.cancelled:
                return PollResult(
                    status=TaskStatus.PENDING,
                    payload=last_payload,
                    attempts=attempt - 1,
                    cancelled=True,
                )

            try:
                last_payload = self.fetch()
                status = TaskStatus(last_payload.get("status", TaskStatus.PENDING))
            except requests.RequestException as e:
                # Transient: keep polling until the budget runs out
                logger.warning(f"Poll attempt {attempt} failed: {str(e)}")
            except ValueError:
                logger.error(
                    f"Unexpected status in poll response: {last_payload}\n{format_exc()}"
                )
            else:
                if status.is_terminal:
                    return PollResult(
                        status=status, payload=last_payload, attempts=attempt
                    )

            if attempt < self.max_attempts and self._cancelled.wait(self.interval):
                return PollResult(
                    status=TaskStatus.PENDING,
                    payload=last_payload,
                    attempts=attempt,
                    cancelled=True,
                )

        logger.info(f"Gave up polling after {self.max_attempts} attempts")
        return PollResult(
            status=TaskStatus.PENDING,
            payload=last_payload,
            attempts=self.max_attempts,
            timed_out=True,
            message=TIMEOUT_MESSAGE,
        )
