from trace_parser import ActionKind, parse_block_traces

CONTRACT = '0x' + '12' * 20
UPPERCASE = '0x' + 'AB' * 20
OTHER = '0x' + '34' * 20

def suicide(address, tx_hash='0x01', position=0, trace_address=(), error=None):
    trace = {
        'type': 'suicide',
        'action': {'address': address, 'refundAddress': OTHER, 'balance': '0x0'},
        'result': None,
        'transactionHash': tx_hash,
        'transactionPosition': position,
        'traceAddress': list(trace_address),
    }
    if error is not None:
        trace['error'] = error
    return trace

def create(address, tx_hash='0x01', position=0, trace_address=(), error=None):
    trace = {
        'type': 'create',
        'action': {'from': OTHER, 'value': '0x0', 'gas': '0x10000', 'init': '0x6000'},
        'result': None if error else {'address': address, 'code': '0x00', 'gasUsed': '0x1'},
        'transactionHash': tx_hash,
        'transactionPosition': position,
        'traceAddress': list(trace_address),
    }
    if error is not None:
        trace['error'] = error
    return trace

def call(tx_hash='0x01', position=0, trace_address=(), error=None):
    trace = {
        'type': 'call',
        'action': {'from': OTHER, 'to': CONTRACT, 'value': '0x0', 'input': '0x'},
        'result': {'gasUsed': '0x0', 'output': '0x'},
        'transactionHash': tx_hash,
        'transactionPosition': position,
        'traceAddress': list(trace_address),
    }
    if error is not None:
        trace['error'] = error
    return trace

def test_extracts_selfdestruct_and_create():
    traces = [
        call(),
        suicide(CONTRACT, trace_address=(0,)),
        create(OTHER, tx_hash='0x02', position=1),
    ]

    actions = parse_block_traces(100, traces)

    assert [(a.kind, a.address, a.transaction_position) for a in actions] == [
        (ActionKind.SELFDESTRUCT, CONTRACT, 0),
        (ActionKind.CREATE, OTHER, 1),
    ]
    assert all(a.block_number == 100 for a in actions)
    assert [a.trace_index for a in actions] == [1, 2]

def test_addresses_are_lowercased():
    actions = parse_block_traces(1, [create(UPPERCASE)])
    assert actions[0].address == UPPERCASE.lower()

def test_selfdestruct_type_alias():
    trace = suicide(CONTRACT)
    trace['type'] = 'selfdestruct'
    assert parse_block_traces(1, [trace])[0].kind == ActionKind.SELFDESTRUCT

def test_failed_create_is_skipped():
    assert parse_block_traces(1, [create(CONTRACT, error='Reverted')]) == []

def test_actions_under_failed_frame_are_skipped():
    traces = [
        call(trace_address=()),
        call(trace_address=(0,), error='Reverted'),
        suicide(CONTRACT, trace_address=(0, 0)),
        create(OTHER, trace_address=(1,)),
    ]

    actions = parse_block_traces(7, traces)

    assert [(a.kind, a.address) for a in actions] == [(ActionKind.CREATE, OTHER)]

def test_failed_top_level_call_reverts_whole_transaction():
    traces = [
        call(tx_hash='0xaa', trace_address=(), error='out of gas'),
        suicide(CONTRACT, tx_hash='0xaa', trace_address=(0,)),
        suicide(OTHER, tx_hash='0xbb', position=1, trace_address=(0,)),
    ]

    actions = parse_block_traces(7, traces)

    assert [a.address for a in actions] == [OTHER]

def test_error_in_other_transaction_does_not_leak():
    traces = [
        call(tx_hash='0xaa', error='Reverted'),
        create(CONTRACT, tx_hash='0xbb', position=1),
    ]
    assert [a.address for a in parse_block_traces(3, traces)] == [CONTRACT]

def test_bad_address_is_dropped():
    assert parse_block_traces(1, [suicide('0x1234')]) == []
    assert parse_block_traces(1, [create(None)]) == []
