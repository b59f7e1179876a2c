"""
Bounded retry for the reconciliation write path.

Two reconciliations of the same record can both try to insert the same clause;
the loser hits the unique constraint. The whole transaction is retried so the
loser re-reads the committed rows and finds nothing left to add.
"""
import asyncio
from collections.abc import Awaitable, Callable
from typing import Tuple, Type, TypeVar
from pydantic import BaseModel, ConfigDict, Field

from authorization_attrs.core import config
from authorization_attrs.core.exceptions import TransientWriteConflictError
from authorization_attrs.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """
    Retry settings for one atomic operation.

    Usage:
        policy = RetryPolicy(max_retries=3, delay=0.05, backoff=2)
        result = await policy.run(lambda: write_rows(session))
    """
    max_retries: int = Field(3, ge=0, description="Retries after the first attempt")
    delay: float = Field(0.0, ge=0, description="Seconds before the first retry")
    backoff: float = Field(1.0, ge=1, description="Multiplier applied to the delay after each retry")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_retries=config.RECONCILE_MAX_RETRIES,
            delay=config.RECONCILE_RETRY_DELAY,
            backoff=config.RECONCILE_RETRY_BACKOFF,
        )

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before the given retry (1-based)."""
        return self.delay * self.backoff ** (retry_number - 1)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        retry_on: Tuple[Type[BaseException], ...] = (TransientWriteConflictError,),
    ) -> T:
        """
        Await operation(), retrying on the given exceptions.

        Raises:
            The last retryable exception once max_retries retries have failed;
            any other exception immediately.
        """
        retry_number = 0
        while True:
            try:
                return await operation()
            except retry_on as e:
                if retry_number >= self.max_retries:
                    log.warning(f"Giving up after {retry_number} retries: {e}")
                    raise
                retry_number += 1
                wait = self.delay_for(retry_number)
                log.warning(f"Retry {retry_number}/{self.max_retries} in {wait:.3f}s after: {e}")
                if wait:
                    await asyncio.sleep(wait)
