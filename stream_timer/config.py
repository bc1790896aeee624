# config.py
import os
import logging

from dotenv import find_dotenv, load_dotenv

log = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when a required setting (the token secret) is missing."""


# --- RUNTIME SETTINGS DEFAULTS ---
# These are the default settings for the timer server. Any of them can be
# overridden from the environment (or a .env file), see ENV_VARS below.
DEFAULT_SETTINGS = {
    'secret': None,  # Shared HMAC key for share tokens (None disables link generation)
    'data_dir': 'data',  # Directory holding the local sections slot
    'storage_slot': 'stream_sections.json',  # The single named slot for the section list
    'tick_interval': 1.0,  # Seconds between timer ticks
    'display_cache_size': 64,  # Max number of live display countdowns kept in memory
    'encode_timeout': 5,  # Seconds to wait for the create_token request
    'encode_retries': 1,  # Extra attempts for the create_token request
    'host': '0.0.0.0',
    'port': 5000,
    'log_level': 'INFO',
    'log_dir': None,  # Directory for the rotating log file (None logs to the console only)
}

# --- ENVIRONMENT MAPPING ---
# setting key -> (environment variable, parser)
ENV_VARS = {
    'secret': ('JWT_SECRET', str),
    'data_dir': ('STREAM_TIMER_DATA_DIR', str),
    'tick_interval': ('STREAM_TIMER_TICK_INTERVAL', float),
    'display_cache_size': ('STREAM_TIMER_DISPLAY_CACHE', int),
    'encode_timeout': ('STREAM_TIMER_ENCODE_TIMEOUT', float),
    'encode_retries': ('STREAM_TIMER_ENCODE_RETRIES', int),
    'host': ('STREAM_TIMER_HOST', str),
    'port': ('STREAM_TIMER_PORT', int),
    'log_level': ('STREAM_TIMER_LOG_LEVEL', str),
    'log_dir': ('STREAM_TIMER_LOG_DIR', str),
}


def load_settings(overrides=None, use_dotenv=True):
    """Builds the settings dict from defaults, the environment and explicit overrides."""
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    settings = dict(DEFAULT_SETTINGS)
    for key, (env_name, parser) in ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is None or raw == '':
            continue
        try:
            settings[key] = parser(raw)
        except ValueError:
            log.warning(f"Invalid value {raw!r} for {env_name}, using default {settings[key]!r}")

    if overrides:
        settings.update(overrides)

    if not settings['secret']:
        log.warning("JWT_SECRET not set. Share links cannot be generated and all tokens will fail verification.")
    return settings


def storage_path(settings):
    """Full path of the local sections slot."""
    return os.path.join(settings['data_dir'], settings['storage_slot'])
