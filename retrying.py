import asyncio
import logging

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

def _log_retry(retries, what):
    def before_sleep(retry_state):
        logger.warning("%s: %s, retry %d/%d in %.1fs",
            what, retry_state.outcome.exception(), retry_state.attempt_number, retries,
            retry_state.next_action.sleep)
    return before_sleep

def backoff_retrying(error_type, retries=3, backoff_base=0.5, backoff_max=8.0, sleep=asyncio.sleep, what="call"):
    """
    Retry `error_type` up to `retries` times, waiting `backoff_base` seconds
    and doubling each time up to `backoff_max`. The last error is re-raised
    once attempts run out; any other exception is raised straight away.
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(error_type),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=backoff_base, max=backoff_max),
        before_sleep=_log_retry(retries, what),
        sleep=sleep,
        reraise=True,
    )
