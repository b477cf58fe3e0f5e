import asyncio
import logging

from errors import FatalFetchError, ScanAbortedError, TransientFetchError
from retrying import backoff_retrying
from trace_parser import Action

logger = logging.getLogger(__name__)

class BlockScanner:
    """
    Fetches the actions of every block in an inclusive range.

    A fixed pool of workers pulls block numbers from one shared iterator and
    every call to the trace client holds a permit from a semaphore sized to
    `concurrency`. Each worker collects its own results; they are merged and
    put back in chronological order once all workers are done, so the order
    in which fetches complete never matters.
    """

    def __init__(self, client, concurrency=32, retries=3, backoff_base=0.5, backoff_max=8.0, sleep=asyncio.sleep):
        self.client = client
        self.concurrency = concurrency
        self.retries = retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.sleep = sleep

    async def fetch_block(self, block_number: int, limiter: asyncio.Semaphore) -> [Action]:
        retrying = backoff_retrying(TransientFetchError,
            retries=self.retries,
            backoff_base=self.backoff_base,
            backoff_max=self.backoff_max,
            sleep=self.sleep,
            what="block {}".format(block_number))
        try:
            async for attempt in retrying:
                with attempt:
                    async with limiter:
                        return await self.client.trace_block(block_number)
        except FatalFetchError as e:
            raise ScanAbortedError(block_number, e) from e
        except TransientFetchError as e:
            raise ScanAbortedError(block_number, "gave up after {} retries: {}".format(self.retries, e)) from e

    async def _worker(self, blocks, limiter) -> [Action]:
        found = []
        for block_number in blocks:
            found.extend(await self.fetch_block(block_number, limiter))
        return found

    async def scan(self, start_block: int, end_block: int) -> [Action]:
        if start_block < 0 or end_block < start_block:
            raise ValueError("invalid block range [{}, {}]".format(start_block, end_block))

        blocks = iter(range(start_block, end_block + 1))
        limiter = asyncio.Semaphore(self.concurrency)
        num_workers = min(self.concurrency, end_block - start_block + 1)
        workers = [asyncio.create_task(self._worker(blocks, limiter)) for _ in range(num_workers)]

        try:
            done, pending = await asyncio.wait(workers, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await _cancel_all(workers)
            raise

        for task in done:
            if task.exception() is not None:
                await _cancel_all(pending)
                raise task.exception()

        # single join point
        actions = [action for task in workers for action in task.result()]
        actions.sort(key=Action.sort_key)
        logger.info("scanned blocks [%d, %d]: %d selfdestruct/create actions", start_block, end_block, len(actions))
        return actions

async def _cancel_all(tasks):
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
