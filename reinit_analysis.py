from dataclasses import dataclass, field

from trace_parser import Action, ActionKind

BEYOND_RANGE = 'beyond range'

@dataclass(frozen=True)
class ReinitializationRecord:
    address: str
    destruction_block: int
    recreation_block: int  # or BEYOND_RANGE

    def sort_key(self):
        return (self.address, self.destruction_block)

@dataclass
class ReconcileResult:
    confirmed: [ReinitializationRecord] = field(default_factory=list)
    # address -> block of the last selfdestruct that has no later create in range
    pending: dict = field(default_factory=dict)

def _is_later(create: Action, destruct: Action) -> bool:
    # same block only counts when the create sits in a later transaction
    if create.block_number != destruct.block_number:
        return create.block_number > destruct.block_number
    return create.transaction_position > destruct.transaction_position

def reconcile_timeline(address: str, timeline: [Action], result: ReconcileResult):
    open_destructs = []

    for action in timeline:
        if action.kind == ActionKind.SELFDESTRUCT:
            open_destructs.append(action)
            continue

        # a create closes every earlier unmatched selfdestruct
        still_open = []
        for destruct in open_destructs:
            if _is_later(action, destruct):
                result.confirmed.append(ReinitializationRecord(address, destruct.block_number, action.block_number))
            else:
                still_open.append(destruct)
        open_destructs = still_open

    if open_destructs:
        result.pending[address] = open_destructs[-1].block_number

class AnalysisState:
    """
    Groups actions into per-address timelines and classifies each address
    once the whole range has been applied.
    """

    def __init__(self):
        self.timelines = {}

    def apply_actions(self, actions: [Action]):
        for action in actions:
            if action.address in self.timelines:
                self.timelines[action.address].append(action)
            else:
                self.timelines[action.address] = [action]

    def reconcile(self) -> ReconcileResult:
        result = ReconcileResult()
        for address in sorted(self.timelines):
            timeline = sorted(self.timelines[address], key=Action.sort_key)
            reconcile_timeline(address, timeline, result)
        return result

def find_reinitialized(actions: [Action]) -> ReconcileResult:
    state = AnalysisState()
    state.apply_actions(actions)
    return state.reconcile()
