import asyncio
import logging
from dataclasses import dataclass, field

from errors import StoreQueryError
from reinit_analysis import BEYOND_RANGE, ReinitializationRecord
from retrying import backoff_retrying

logger = logging.getLogger(__name__)

@dataclass
class ResolveResult:
    confirmed: [ReinitializationRecord] = field(default_factory=list)
    unresolved: [str] = field(default_factory=list)

def chunked(items, size):
    return [items[i:i + size] for i in range(0, len(items), size)]

class StateResolver:
    """
    Decides whether addresses left destroyed at the end of the scanned range
    were redeployed later by checking whether they exist in the account store
    now. Lookups go out in fixed-size chunks, at most `concurrency` at a time.
    A chunk that keeps failing does not sink the run: its addresses are
    reported as unresolved and every other chunk is still used.
    """

    def __init__(self, store, chunk_size=10, concurrency=4, retries=3, backoff_base=0.5, backoff_max=8.0, sleep=asyncio.sleep):
        self.store = store
        self.chunk_size = chunk_size
        self.concurrency = concurrency
        self.retries = retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.sleep = sleep

    async def _lookup_chunk(self, chunk, limiter):
        retrying = backoff_retrying(StoreQueryError,
            retries=self.retries,
            backoff_base=self.backoff_base,
            backoff_max=self.backoff_max,
            sleep=self.sleep,
            what="store lookup at {}".format(chunk[0]))
        try:
            async for attempt in retrying:
                with attempt:
                    async with limiter:
                        return await self.store.lookup_existing(chunk)
        except StoreQueryError as e:
            logger.warning("giving up on %d addresses starting at %s: %s", len(chunk), chunk[0], e)
            return None

    async def resolve(self, pending: dict) -> ResolveResult:
        result = ResolveResult()
        if not pending:
            return result

        addresses = sorted(pending)
        chunks = chunked(addresses, self.chunk_size)
        limiter = asyncio.Semaphore(self.concurrency)
        found = await asyncio.gather(*(self._lookup_chunk(chunk, limiter) for chunk in chunks))

        # merge in chunk order
        for chunk, existing in zip(chunks, found):
            if existing is None:
                result.unresolved.extend(chunk)
                continue
            for address in chunk:
                if address in existing:
                    logger.info("Address %s has been recreated", address)
                    result.confirmed.append(ReinitializationRecord(address, pending[address], BEYOND_RANGE))

        logger.info("resolved %d pending addresses: %d recreated, %d unresolved",
            len(addresses), len(result.confirmed), len(result.unresolved))
        return result
