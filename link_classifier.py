"""Decides which links get checked and how."""

from urllib.parse import urlparse

EXTERNAL_PREFIXES = ('http://', 'https://')


def is_external(href):
    """Check if the href needs a network check rather than a filesystem one"""
    return href.startswith(EXTERNAL_PREFIXES)


def _host_of(href):
    """Return the host of an absolute URL, or None if href is not one"""
    try:
        parsed = urlparse(href)
        host = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not host:
        return None
    return host


def should_skip(href, config):
    """Check if the href is excluded from checking and reporting"""
    for pattern in config.exclude_patterns:
        if pattern.search(href):
            return True

    # Malformed or relative URLs are never skipped by domain
    host = _host_of(href)
    if host is not None:
        for domain in config.skip_domains:
            if domain.lower() in host:
                return True

    return False


def filter_targets(targets, config):
    """Drop the targets excluded by the configuration"""
    return [t for t in targets if not should_skip(t.href, config)]
