import json
import logging
import os
import tempfile

from eth_utils import to_checksum_address

from errors import SerializationError
from reinit_analysis import ReinitializationRecord

logger = logging.getLogger(__name__)

def build_report(start_block, end_block, records: [ReinitializationRecord], unresolved=()) -> dict:
    return {
        "startBlock": start_block,
        "endBlock": end_block,
        "reinitialized": [
            {
                "address": to_checksum_address(record.address),
                "destructionBlock": record.destruction_block,
                "recreationBlock": record.recreation_block,
            }
            for record in sorted(records, key=ReinitializationRecord.sort_key)
        ],
        "unresolved": [to_checksum_address(addr) for addr in sorted(unresolved)],
    }

def write_report(path, start_block, end_block, records, unresolved=()):
    """
    Write the report to `path`, replacing any previous file in one step.
    Nothing is left behind at `path` or next to it when writing fails.
    """
    try:
        document = json.dumps(build_report(start_block, end_block, records, unresolved), indent=2)
    except (TypeError, ValueError) as e:
        raise SerializationError("could not serialize report: {}".format(e)) from e

    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix='.reinit-', suffix='.tmp', dir=directory)
        with os.fdopen(fd, 'w') as f:
            f.write(document + '\n')
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise SerializationError("could not write {}: {}".format(path, e)) from e

    logger.info("wrote %d reinitialized contracts to %s", len(records), path)
