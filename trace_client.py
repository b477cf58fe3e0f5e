import logging

import httpx

from errors import FatalFetchError, FetchTimeoutError, TransientFetchError
from trace_parser import Action, parse_block_traces

logger = logging.getLogger(__name__)

# substrings of node error messages meaning the block will never be served
MISSING_BLOCK_MARKERS = ('not found', 'pruned', 'unknown block', 'missing')

class TraceClient:
    """
    Thin `trace_block` client. Every call is a single POST; retrying is left
    to the caller.
    """

    def __init__(self, url: str, timeout: float = 30.0, max_connections: int = 32, client: httpx.AsyncClient = None):
        self.url = url
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max(1, max_connections // 2)),
            )
        self.client = client

    async def trace_block(self, block_number: int) -> [Action]:
        payload = {
            "jsonrpc": "2.0",
            "method": "trace_block",
            "params": [hex(block_number)],
            "id": 1,
        }

        try:
            r = await self.client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(block_number, "timed out: {}".format(e)) from e
        except httpx.TransportError as e:
            raise TransientFetchError(block_number, "transport error: {}".format(e)) from e

        if r.status_code == 408:
            raise FetchTimeoutError(block_number, "http status 408")
        if r.status_code == 429 or r.status_code >= 500:
            raise TransientFetchError(block_number, "http status {}".format(r.status_code))
        if r.status_code >= 400:
            raise FatalFetchError(block_number, "http status {}".format(r.status_code))

        try:
            resp = r.json()
        except ValueError as e:
            raise TransientFetchError(block_number, "malformed response body") from e

        if not isinstance(resp, dict):
            raise TransientFetchError(block_number, "unexpected response: {!r}".format(resp))

        if resp.get('error') is not None:
            err = resp['error']
            msg = str(err.get('message', err) if isinstance(err, dict) else err)
            if any(marker in msg.lower() for marker in MISSING_BLOCK_MARKERS):
                raise FatalFetchError(block_number, "rpc error: {}".format(msg))
            raise TransientFetchError(block_number, "rpc error: {}".format(msg))

        result = resp.get('result')
        if result is None:
            raise FatalFetchError(block_number, "no traces returned, block missing or pruned")
        if not isinstance(result, list):
            raise TransientFetchError(block_number, "unexpected result type {}".format(type(result).__name__))

        actions = parse_block_traces(block_number, result)
        logger.debug("block %d: %d traces, %d actions", block_number, len(result), len(actions))
        return actions

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()
