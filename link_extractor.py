"""
Link Extractor

Discovers the rendered HTML documents of a site and pulls every anchor
target out of them.
"""

import logging
import os
from collections import namedtuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# href: the raw anchor target
# source: document path relative to the site directory, used in reports
# document_path: absolute document path, used to resolve relative hrefs
Target = namedtuple('Target', ['href', 'source', 'document_path'])


class ReadError(Exception):
    """Raised when an input HTML document or site directory cannot be read"""

    def __init__(self, path, reason):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


def find_html_files(site_dir):
    """Yield the path of every .html file below site_dir"""
    pending = [site_dir]
    while pending:
        directory = pending.pop()
        try:
            entries = list(os.scandir(directory))
        except FileNotFoundError:
            logger.warning(f"Directory not found: {directory}")
            continue
        except OSError as e:
            raise ReadError(directory, e.strerror or str(e)) from e

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                pending.append(entry.path)
            elif entry.name.endswith('.html'):
                yield entry.path


def extract_links(html_path, site_dir):
    """Extract the anchor targets of one HTML document"""
    try:
        with open(html_path, 'r', encoding='utf-8', errors='replace') as f:
            html = f.read()
    except OSError as e:
        raise ReadError(html_path, e.strerror or str(e)) from e

    soup = BeautifulSoup(html, 'html.parser')
    source = os.path.relpath(html_path, site_dir)
    document_path = os.path.abspath(html_path)

    targets = []
    seen = set()
    for anchor in soup.find_all('a', href=True):
        href = anchor['href'].strip()
        if not href or href in seen:
            continue
        seen.add(href)
        targets.append(Target(href, source, document_path))

    logger.debug(f"Found {len(targets)} links in {source}")
    return targets
