"""
The account-state store: one sqlite table of live accounts keyed by address.

`DB`/`Account` create and fill store files and open them for the startup
check; `query_existing` and `AccountStateStore` are the lookup side used
while resolving pending addresses.
"""
import asyncio
import os
import sqlite3

from eth_utils import to_normalized_address

from errors import ConfigurationError, StoreQueryError, StoreTimeoutError

class Account():
    def __init__(self, address, nonce=0, balance='0', code_hash=None):
        self.address = to_normalized_address(address)
        self.nonce = nonce
        self.balance = balance
        self.code_hash = code_hash

class DB():
    def __init__(self, path):
        self.path = path

    @staticmethod
    def load(db_name):
        if not os.path.exists(db_name):
            raise ConfigurationError('DB_PATH', "db doesn't exist: {}".format(db_name))

        db = DB(db_name)
        db.connection = sqlite3.connect('file:{}?mode=ro'.format(db_name), uri=True)
        db.cursor = db.connection.cursor()
        return db

    @staticmethod
    def new(name):
        if os.path.exists(name):
            os.remove(name)

        db = DB(name)
        db.connection = sqlite3.connect(name)
        db.cursor = db.connection.cursor()
        db.create_accounts_table()
        return db

    def create_accounts_table(self):
        self.cursor.execute('CREATE TABLE accounts (address TEXT NOT NULL PRIMARY KEY, nonce INTEGER NOT NULL, balance TEXT NOT NULL, code_hash TEXT)')
        self.connection.commit()

    def add_account_no_commit(self, account: Account):
        self.cursor.execute('INSERT INTO accounts VALUES (?, ?, ?, ?)',
            (account.address, account.nonce, account.balance, account.code_hash))

    def add_account(self, account: Account):
        self.add_account_no_commit(account)
        self.connection.commit()

    def has_accounts_table(self):
        row = self.cursor.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name='accounts'").fetchone()
        return row is not None

    def close(self):
        self.connection.close()

def query_existing(db_path, addresses) -> set:
    """
    Return the subset of `addresses` that have a row in the accounts table.

    Opens its own read-only connection, so it is safe to call from several
    worker threads at once.
    """
    if not addresses:
        return set()

    try:
        connection = sqlite3.connect('file:{}?mode=ro'.format(db_path), uri=True)
        try:
            placeholders = ','.join('?' * len(addresses))
            rows = connection.execute(
                'SELECT address FROM accounts WHERE address IN ({})'.format(placeholders),
                [to_normalized_address(addr) for addr in addresses]).fetchall()
        finally:
            connection.close()
    except sqlite3.Error as e:
        raise StoreQueryError("account lookup failed for {} addresses: {}".format(len(addresses), e)) from e

    return {row[0] for row in rows}

class AccountStateStore:
    """Async view over the accounts table used by the state resolver."""

    def __init__(self, db_path, timeout=30.0):
        self.db_path = db_path
        self.timeout = timeout

    async def lookup_existing(self, addresses) -> set:
        query = asyncio.ensure_future(asyncio.to_thread(query_existing, self.db_path, list(addresses)))
        try:
            return await asyncio.wait_for(asyncio.shield(query), self.timeout)
        except asyncio.TimeoutError as e:
            # the thread can't be interrupted; its connection counts against the caller's permit until it ends
            await asyncio.gather(query, return_exceptions=True)
            raise StoreTimeoutError("account lookup timed out after {}s".format(self.timeout)) from e
