"""Uniform retry policy for ledger and content store calls."""

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import structlog

from ..config.defaults import RetryParams
from ..errors import TransientRPCError
from ..utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff over TransientRPCError only.

    Reverts, definitive "not found" answers and every other error propagate
    on the first attempt.
    """
    max_attempts: int = 5
    base_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 8.0

    @classmethod
    def from_params(cls, params: RetryParams) -> "RetryPolicy":
        return cls(
            max_attempts=params.max_attempts,
            base_delay_seconds=params.base_delay_seconds,
            multiplier=params.multiplier,
            max_delay_seconds=params.max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        delay = self.base_delay_seconds * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay_seconds)

    def call(
        self,
        fn: Callable[[], T],
        description: str,
        cancel: Optional[CancellationToken] = None,
    ) -> T:
        """
        Run `fn` until it succeeds or the attempt budget is exhausted.

        Args:
            fn: Zero-argument callable performing one remote call
            description: Name of the call for logs
            cancel: Token checked before every attempt and during backoff

        Returns:
            Whatever `fn` returns

        Raises:
            TransientRPCError: The last transient error once attempts run out
            Cancelled: If the token fires
        """
        attempt = 0

        while True:
            if cancel is not None:
                cancel.raise_if_cancelled(step=description)

            attempt += 1
            try:
                return fn()
            except TransientRPCError as e:
                e.retry_count = attempt
                e.max_retries = self.max_attempts - 1

                if attempt >= self.max_attempts:
                    logger.warning(
                        "Retries exhausted",
                        call=description,
                        attempts=attempt,
                        error=str(e)
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "Transient failure, retrying",
                    call=description,
                    attempt=attempt,
                    retry_in_seconds=delay,
                    error=str(e)
                )
                if cancel is not None:
                    cancel.wait(delay, step=description)
                else:
                    time.sleep(delay)
