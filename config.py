import os
from dataclasses import dataclass

from dotenv import load_dotenv

from errors import ConfigurationError

DEFAULT_OUTPUT_PATH = 'reinitialized_contracts.json'

@dataclass(frozen=True)
class Config:
    rpc_url: str
    db_path: str
    output_path: str = DEFAULT_OUTPUT_PATH
    fetch_concurrency: int = 32
    fetch_retries: int = 3
    rpc_timeout: float = 30.0
    store_concurrency: int = 4
    store_chunk_size: int = 10
    store_retries: int = 3
    store_timeout: float = 30.0
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    log_level: str = 'INFO'

def _required(env, key):
    value = env.get(key, '').strip()
    if not value:
        raise ConfigurationError(key, "missing required setting")
    return value

def _number(env, key, default, kind=int, minimum=1):
    raw = env.get(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigurationError(key, "expected a number, got {!r}".format(raw))
    if value < minimum:
        raise ConfigurationError(key, "must be at least {}, got {}".format(minimum, value))
    return value

def load_config(env=None, use_dotenv=True) -> Config:
    """
    Build and validate the scan configuration.

    Reads the process environment (after loading a `.env` file, if any) unless
    an explicit mapping is given. Everything is checked here so a bad setting
    fails before any block is fetched.
    """
    if env is None:
        if use_dotenv:
            load_dotenv()
        env = os.environ

    rpc_url = _required(env, 'RPC_URL')
    if not rpc_url.startswith(('http://', 'https://')):
        raise ConfigurationError('RPC_URL', "not an http(s) endpoint: {}".format(rpc_url))

    db_path = _required(env, 'DB_PATH')
    if not os.path.isfile(db_path):
        raise ConfigurationError('DB_PATH', "db doesn't exist: {}".format(db_path))

    backoff_base = _number(env, 'BACKOFF_BASE', Config.backoff_base, float, minimum=0)
    backoff_max = _number(env, 'BACKOFF_MAX', Config.backoff_max, float, minimum=0)
    if backoff_max < backoff_base:
        raise ConfigurationError('BACKOFF_MAX', "smaller than BACKOFF_BASE")

    log_level = env.get('LOG_LEVEL', Config.log_level).strip().upper() or Config.log_level
    if log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        raise ConfigurationError('LOG_LEVEL', "unknown level {}".format(log_level))

    return Config(
        rpc_url=rpc_url,
        db_path=db_path,
        output_path=env.get('OUTPUT_PATH', '').strip() or DEFAULT_OUTPUT_PATH,
        fetch_concurrency=_number(env, 'FETCH_CONCURRENCY', Config.fetch_concurrency),
        fetch_retries=_number(env, 'FETCH_RETRIES', Config.fetch_retries, minimum=0),
        rpc_timeout=_number(env, 'RPC_TIMEOUT', Config.rpc_timeout, float, minimum=0.1),
        store_concurrency=_number(env, 'STORE_CONCURRENCY', Config.store_concurrency),
        store_chunk_size=_number(env, 'STORE_CHUNK_SIZE', Config.store_chunk_size),
        store_retries=_number(env, 'STORE_RETRIES', Config.store_retries, minimum=0),
        store_timeout=_number(env, 'STORE_TIMEOUT', Config.store_timeout, float, minimum=0.1),
        backoff_base=backoff_base,
        backoff_max=backoff_max,
        log_level=log_level,
    )
