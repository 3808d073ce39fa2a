"""
Link Checker Configuration

Loads the optional JSON configuration file of the dead links finder and
turns it into a read-only CheckConfig. Missing or malformed files, values of
the wrong type and invalid regular expressions fall back to the defaults
with a logged warning; they never abort a run.
"""

import json
import logging
import os
import re

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = 'linkcheck.config.json'

DEFAULT_CONFIG = {
    'siteDir': '_site',
    'concurrency': 20,
    'timeoutMs': 10000,
    'excludePatterns': ['^mailto:', '^tel:', '^javascript:', '^#'],
    'skipDomains': [],
    'softNotFoundPatterns': [
        'page not found',
        'not found',
        'does not exist',
        'no longer available',
        'has been removed',
        "this page doesn't exist",
    ],
    'retries': 2,
    'retryDelayMs': 1000,
    'softNotFoundTitleMaxLength': 80,
    'softNotFoundHeadingMaxLength': 50,
}

# Older config files spell some keys differently
KEY_ALIASES = {
    'timeout': 'timeoutMs',
}

POSITIVE_INT_KEYS = ('concurrency', 'timeoutMs', 'softNotFoundTitleMaxLength', 'softNotFoundHeadingMaxLength')
NON_NEGATIVE_INT_KEYS = ('retries', 'retryDelayMs')
STRING_LIST_KEYS = ('excludePatterns', 'skipDomains', 'softNotFoundPatterns')


class CheckConfig:
    """Settings for one link checking run"""

    def __init__(self, site_dir='_site', concurrency=20, timeout_ms=10000,
                 exclude_patterns=None, skip_domains=None, soft_not_found_patterns=None,
                 retries=2, retry_delay_ms=1000, max_title_length=80, max_heading_length=50):
        for name, value in (('concurrency', concurrency), ('timeout_ms', timeout_ms),
                            ('max_title_length', max_title_length),
                            ('max_heading_length', max_heading_length)):
            if not _is_int(value) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        for name, value in (('retries', retries), ('retry_delay_ms', retry_delay_ms)):
            if not _is_int(value) or value < 0:
                raise ValueError(f"{name} must be 0 or greater, got {value!r}")

        if exclude_patterns is None:
            exclude_patterns = DEFAULT_CONFIG['excludePatterns']
        if soft_not_found_patterns is None:
            soft_not_found_patterns = DEFAULT_CONFIG['softNotFoundPatterns']

        self.site_dir = site_dir
        self.concurrency = concurrency
        self.timeout_ms = timeout_ms
        self.exclude_patterns = tuple(
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE)
            for p in exclude_patterns
        )
        self.skip_domains = tuple(skip_domains or ())
        self.soft_not_found_patterns = tuple(p.lower() for p in soft_not_found_patterns)
        self.retries = retries
        self.retry_delay_ms = retry_delay_ms
        self.max_title_length = max_title_length
        self.max_heading_length = max_heading_length

    @property
    def timeout(self):
        """Request timeout in seconds"""
        return self.timeout_ms / 1000

    @property
    def retry_delay(self):
        """Backoff between retries in seconds"""
        return self.retry_delay_ms / 1000

    @classmethod
    def from_dict(cls, data):
        """Build a config from a JSON-style dict, degrading bad values to defaults"""
        values = dict(DEFAULT_CONFIG)

        for key, value in data.items():
            key = KEY_ALIASES.get(key, key)
            if key not in DEFAULT_CONFIG:
                logger.debug(f"Ignoring unknown config key: {key}")
                continue
            if _valid_value(key, value):
                values[key] = value
            else:
                logger.warning(f"Invalid value for '{key}' in config: {value!r}. "
                               f"Using default {DEFAULT_CONFIG[key]!r}")

        return cls(
            site_dir=values['siteDir'],
            concurrency=values['concurrency'],
            timeout_ms=values['timeoutMs'],
            exclude_patterns=_compile_patterns(values['excludePatterns']),
            skip_domains=[d for d in values['skipDomains'] if d],
            soft_not_found_patterns=values['softNotFoundPatterns'],
            retries=values['retries'],
            retry_delay_ms=values['retryDelayMs'],
            max_title_length=values['softNotFoundTitleMaxLength'],
            max_heading_length=values['softNotFoundHeadingMaxLength'],
        )


def load_config(config_path=None, overrides=None):
    """Load configuration from a JSON file, falling back to the defaults

    overrides is a dict of JSON keys applied on top of the file, e.g. values
    given on the command line.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    if not os.path.exists(config_path):
        logger.info(f"No config file at {config_path}. Using defaults.")
        return CheckConfig.from_dict(overrides)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not parse config file {config_path}: {e}")
        return CheckConfig.from_dict(overrides)

    if not isinstance(data, dict):
        logger.warning(f"Config file {config_path} must contain a JSON object. Using defaults.")
        return CheckConfig.from_dict(overrides)

    logger.info(f"Loaded config from {config_path}")
    data.update(overrides)
    return CheckConfig.from_dict(data)


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _valid_value(key, value):
    if key == 'siteDir':
        return isinstance(value, str) and bool(value)
    if key in POSITIVE_INT_KEYS:
        return _is_int(value) and value > 0
    if key in NON_NEGATIVE_INT_KEYS:
        return _is_int(value) and value >= 0
    if key in STRING_LIST_KEYS:
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    return True


def _compile_patterns(patterns):
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            logger.warning(f"Skipping invalid exclude pattern {pattern!r}: {e}")
    return compiled
