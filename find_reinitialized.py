import argparse
import asyncio
import logging
import sqlite3
import sys
import time
from dataclasses import replace

from accounts_db import AccountStateStore, DB
from block_scanner import BlockScanner
from config import load_config
from errors import ConfigurationError, ReinitScanError
from reinit_analysis import find_reinitialized
from report_writer import write_report
from state_resolver import StateResolver
from trace_client import TraceClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Find contracts that were selfdestructed and redeployed at the same address.")
    parser.add_argument('start_block', type=int, help="first block to scan (inclusive)")
    parser.add_argument('end_block', type=int, help="last block to scan (inclusive)")
    parser.add_argument('--output', help="report path, overrides OUTPUT_PATH")
    parser.add_argument('--log-level', type=str.upper, choices=LOG_LEVELS, help="overrides LOG_LEVEL")
    return parser.parse_args(argv)

def check_store(config):
    try:
        db = DB.load(config.db_path)
        try:
            has_table = db.has_accounts_table()
        finally:
            db.close()
    except sqlite3.Error as e:
        raise ConfigurationError('DB_PATH', "unreadable account db {}: {}".format(config.db_path, e)) from e
    if not has_table:
        raise ConfigurationError('DB_PATH', "no accounts table in {}".format(config.db_path))

async def run(config, start_block, end_block, client=None, store=None):
    """
    Scan, reconcile, resolve, then write. Each phase starts only after the
    previous one finished, and the report is written only if all of them did.
    """
    start = time.monotonic()

    if client is None:
        client = TraceClient(config.rpc_url, timeout=config.rpc_timeout, max_connections=config.fetch_concurrency)
    scanner = BlockScanner(client,
        concurrency=config.fetch_concurrency,
        retries=config.fetch_retries,
        backoff_base=config.backoff_base,
        backoff_max=config.backoff_max)
    try:
        actions = await scanner.scan(start_block, end_block)
    finally:
        if hasattr(client, 'aclose'):
            await client.aclose()

    reconciled = find_reinitialized(actions)
    for record in reconciled.confirmed:
        logger.info("Address %s has been recreated (destroyed %d, created %d)",
            record.address, record.destruction_block, record.recreation_block)
    logger.info("time elapsed in finding self destruct addresses: %.2fs", time.monotonic() - start)

    if store is None:
        store = AccountStateStore(config.db_path, timeout=config.store_timeout)
    resolver = StateResolver(store,
        chunk_size=config.store_chunk_size,
        concurrency=config.store_concurrency,
        retries=config.store_retries,
        backoff_base=config.backoff_base,
        backoff_max=config.backoff_max)
    resolved = await resolver.resolve(reconciled.pending)

    for address in resolved.unresolved:
        logger.warning("could not resolve current state of %s (destroyed at block %d)", address, reconciled.pending[address])

    records = reconciled.confirmed + resolved.confirmed
    write_report(config.output_path, start_block, end_block, records, resolved.unresolved)
    logger.info("time elapsed in total: %.2fs", time.monotonic() - start)
    return records, resolved.unresolved

def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config()
        if args.output:
            config = replace(config, output_path=args.output)
        log_level = args.log_level or config.log_level
        logging.basicConfig(level=log_level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
        if args.start_block < 0 or args.end_block < args.start_block:
            raise ConfigurationError('range', "invalid block range [{}, {}]".format(args.start_block, args.end_block))
        check_store(config)
    except ConfigurationError as e:
        logging.basicConfig()
        logger.error("configuration error: %s", e)
        return EXIT_CONFIG

    try:
        asyncio.run(run(config, args.start_block, args.end_block))
    except ReinitScanError as e:
        logger.error("%s", e)
        return EXIT_FAILED

    return EXIT_OK

if __name__ == "__main__":
    sys.exit(main())
