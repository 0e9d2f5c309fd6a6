"""
Application settings management.
Uses python-dotenv to load environment variables from .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

# Store original environment values to prevent modification
_ENV_CACHE = {}


def get_setting(key: str, default=None):
    """
    Get a setting from environment variables.

    Values are cached on first read, so later changes to os.environ are
    not picked up. Call clear_settings_cache() to force a re-read.

    Args:
        key: Environment variable name
        default: Default value if not found

    Returns:
        The environment variable value or default

    Example:
        >>> DB_PATH = get_setting('ENTRIES_DB_PATH', 'data/entries.db')
        >>> DEBUG = get_setting('DEBUG', 'False') == 'True'
    """
    if key not in _ENV_CACHE:
        _ENV_CACHE[key] = os.getenv(key, default)

    value = _ENV_CACHE[key]

    # For mutable types, return a copy
    if isinstance(value, (list, dict)):
        return value.copy()

    return value


def clear_settings_cache():
    """Forget cached values (used by tests that patch the environment)."""
    _ENV_CACHE.clear()


# Debug mode
DEBUG = get_setting('DEBUG', 'False').lower() in ('true', '1', 'yes')

# Database paths
ENTRIES_DB_PATH = get_setting('ENTRIES_DB_PATH', 'data/entries.db')
ENTRIES_LOG_DB_PATH = get_setting('ENTRIES_LOG_DB_PATH', 'data/entries_logs.db')

# Directory mirrored by `entries entry sync`
ENTRIES_ROOT = get_setting('ENTRIES_ROOT', str(Path.home() / 'entries'))

# Network
HTTP_TIMEOUT = int(get_setting('HTTP_TIMEOUT', '15'))
