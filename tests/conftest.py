import asyncio

import pytest

from accounts_db import Account, DB
from config import Config
from errors import StoreQueryError
from trace_parser import Action, ActionKind

SD = ActionKind.SELFDESTRUCT
CREATE = ActionKind.CREATE

ADDR_A = '0x' + 'aa' * 20
ADDR_B = '0x' + 'bb' * 20
ADDR_C = '0x' + 'cc' * 20
ADDR_D = '0x' + 'dd' * 20

class FakeOracle:
    """
    In-memory trace oracle. `blocks` maps block number -> [(kind, address, tx_position)],
    `failures` maps block number -> exceptions raised by successive calls.
    Tracks how many calls are in flight at once.
    """

    def __init__(self, blocks=None, failures=None, delays=None):
        self.blocks = blocks or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls = []
        self.cancelled = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def trace_block(self, block_number):
        self.calls.append(block_number)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # vary completion order between blocks
            await asyncio.sleep(self.delays.get(block_number, (block_number * 7 % 5) * 0.001))
            errors = self.failures.get(block_number)
            if errors:
                raise errors.pop(0)
            return [
                Action(address, kind, block_number, tx_position, i)
                for i, (kind, address, tx_position) in enumerate(self.blocks.get(block_number, []))
            ]
        except asyncio.CancelledError:
            self.cancelled.append(block_number)
            raise
        finally:
            self.in_flight -= 1

class FakeStore:
    def __init__(self, existing=(), failures=None):
        self.existing = set(existing)
        # first address of a chunk -> number of times the lookup fails
        self.failures = dict(failures or {})
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup_existing(self, addresses):
        self.calls.append(list(addresses))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            if self.failures.get(addresses[0], 0) > 0:
                self.failures[addresses[0]] -= 1
                raise StoreQueryError("store unavailable")
            return {addr for addr in addresses if addr in self.existing}
        finally:
            self.in_flight -= 1

async def no_sleep(delay):
    pass

@pytest.fixture
def accounts_db(tmp_path):
    def make(addresses=()):
        path = str(tmp_path / 'accounts.db')
        db = DB.new(path)
        for address in addresses:
            db.add_account_no_commit(Account(address, nonce=1, balance='0'))
        db.connection.commit()
        db.close()
        return path
    return make

@pytest.fixture
def config(tmp_path, accounts_db):
    def make(existing=(), **overrides):
        settings = dict(
            rpc_url='http://localhost:8545',
            db_path=accounts_db(existing),
            output_path=str(tmp_path / 'reinitialized_contracts.json'),
            fetch_concurrency=4,
            fetch_retries=2,
            store_concurrency=2,
            store_chunk_size=2,
            store_retries=1,
            backoff_base=0.0,
            backoff_max=0.0,
        )
        settings.update(overrides)
        return Config(**settings)
    return make
