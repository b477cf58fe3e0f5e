import logging
from dataclasses import dataclass
from enum import Enum

from eth_utils import is_address, to_normalized_address

logger = logging.getLogger(__name__)

class ActionKind(Enum):
    SELFDESTRUCT = 'selfdestruct'
    CREATE = 'create'

    def __str__(self):
        return self.value

# parity-style trace types. reth and erigon report selfdestruct as 'suicide'
TRACE_SELFDESTRUCT = ('suicide', 'selfdestruct')
TRACE_CREATE = 'create'

@dataclass(frozen=True)
class Action:
    address: str
    kind: ActionKind
    block_number: int
    transaction_position: int = 0
    trace_index: int = 0

    def sort_key(self):
        return (self.block_number, self.transaction_position, self.trace_index)

def _is_reverted(trace_address, errored_paths) -> bool:
    # a failed frame reverts every frame beneath it
    for path in errored_paths:
        if trace_address[:len(path)] == path:
            return True
    return False

def _tx_key(trace):
    tx_hash = trace.get('transactionHash')
    if tx_hash is not None:
        return tx_hash
    return trace.get('transactionPosition')

def _extract_address(trace):
    trace_type = trace.get('type')
    if trace_type in TRACE_SELFDESTRUCT:
        return ActionKind.SELFDESTRUCT, (trace.get('action') or {}).get('address')
    if trace_type == TRACE_CREATE:
        return ActionKind.CREATE, (trace.get('result') or {}).get('address')
    return None, None

def parse_block_traces(block_number: int, traces: list) -> [Action]:
    """
    Pull selfdestruct and create actions out of a `trace_block` result.

    Traces belonging to a frame that errored (or to any frame nested under
    one) were reverted and are skipped. Actions are returned in trace order.
    """
    errored = {}
    for trace in traces:
        if trace.get('error') is not None:
            path = tuple(trace.get('traceAddress') or ())
            errored.setdefault(_tx_key(trace), []).append(path)

    actions = []
    for trace_index, trace in enumerate(traces):
        kind, address = _extract_address(trace)
        if kind is None:
            continue

        path = tuple(trace.get('traceAddress') or ())
        if _is_reverted(path, errored.get(_tx_key(trace), ())):
            logger.debug("block %d: skipping reverted %s of %s", block_number, kind, address)
            continue

        if address is None or not is_address(address):
            logger.warning("block %d: dropping %s trace with bad address %r", block_number, kind, address)
            continue

        tx_position = trace.get('transactionPosition')
        actions.append(Action(
            address=to_normalized_address(address),
            kind=kind,
            block_number=block_number,
            transaction_position=tx_position if tx_position is not None else 0,
            trace_index=trace_index))

    return actions
