class ReinitScanError(Exception):
    pass

class ConfigurationError(ReinitScanError):
    def __init__(self, key, message):
        super().__init__("{}: {}".format(key, message))
        self.key = key

class TransientFetchError(ReinitScanError):
    def __init__(self, block_number, message):
        super().__init__("block {}: {}".format(block_number, message))
        self.block_number = block_number

class FetchTimeoutError(TransientFetchError):
    pass

class FatalFetchError(ReinitScanError):
    def __init__(self, block_number, message):
        super().__init__("block {}: {}".format(block_number, message))
        self.block_number = block_number

class ScanAbortedError(ReinitScanError):
    def __init__(self, block_number, cause):
        super().__init__("scan aborted at block {}: {}".format(block_number, cause))
        self.block_number = block_number
        self.cause = cause

class StoreQueryError(ReinitScanError):
    pass

class StoreTimeoutError(StoreQueryError):
    pass

class SerializationError(ReinitScanError):
    pass
