"""
Runtime configuration for the LuckyScape service.

Values come from the environment (a local .env file is honoured via
python-dotenv). Engine tuning lives in data/gameConfig.json, not here.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be numeric, got '{raw}'")


def _env_int(name, default):
    value = _env_int_or_none(name)
    return default if value is None else value


def _env_int_or_none(name):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got '{raw}'")


class Config:
    GAME_ID = os.getenv('GAME_ID', 'luckyscape')
    GAME_CONFIG_PATH = os.getenv('GAME_CONFIG_PATH') or None

    # Bet limits in credits
    MIN_BET = _env_float('MIN_BET', 0.1)
    MAX_BET = _env_float('MAX_BET', 100.0)
    DEFAULT_BET = _env_float('DEFAULT_BET', 1.0)

    # External credit ledger; empty disables reporting
    LEDGER_URL = os.getenv('LEDGER_URL', '').rstrip('/')
    LEDGER_TIMEOUT = _env_float('LEDGER_TIMEOUT', 5.0)

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Each player session derives its own stream from this seed; None means unseeded
    RNG_SEED = _env_int_or_none('RNG_SEED')

    # Player sessions kept in memory; the least recently used is evicted past this
    MAX_SESSIONS = _env_int('MAX_SESSIONS', 10000)

    DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 't')
    TESTING = False


class TestingConfig(Config):
    TESTING = True
    RNG_SEED = 1234
    LEDGER_URL = ''
    MIN_BET = 0.1
    MAX_BET = 100.0
