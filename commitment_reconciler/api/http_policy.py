import asyncio
import random

from ..config import HTTP_BASE_DELAY, HTTP_MAX_DELAY, HTTP_MAX_RETRIES, HTTP_RETRY_STATUSES


class HttpRetryPolicy:
    def __init__(
        self,
        max_retries=HTTP_MAX_RETRIES,
        base_delay=HTTP_BASE_DELAY,
        max_delay=HTTP_MAX_DELAY,
        retry_statuses=HTTP_RETRY_STATUSES,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_statuses = frozenset(retry_statuses)

    def should_retry(self, status_code, attempt):
        return status_code in self.retry_statuses and attempt < self.max_retries

    def delay(self, attempt, retry_after=None):
        if retry_after:
            try:
                return min(self.max_delay, float(retry_after))
            except ValueError:
                # HTTP-date form of Retry-After; fall back to backoff.
                pass
        delay = min(self.max_delay, self.base_delay * (2 ** attempt))
        return delay + random.uniform(0, delay * 0.2)

    async def wait_async(self, attempt, retry_after=None):
        await asyncio.sleep(self.delay(attempt, retry_after))
