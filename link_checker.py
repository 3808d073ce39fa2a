"""
Link Checker

Validates a single link target:
- Local targets are resolved against the rendered site on disk, allowing for
  clean URLs (foo -> foo.html) and directory indexes (foo -> foo/index.html)
- External targets are fetched with browser-like headers, with retries on
  timeouts and connection resets, a HEAD fallback for servers that block
  crawlers with 403/429, and soft 404 detection on HTML pages

Network calls go through a shared requests session. They are blocking, so
they run on a thread pool and are awaited from the event loop. timeoutMs is a
deadline for the whole request, headers and body included.
"""

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from urllib.parse import unquote

import requests
from link_classifier import is_external
from request_deadline import DeadlineAdapter, RequestDeadline
from soft_404 import is_soft_not_found

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    'User-Agent': ('Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
                   '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'),
    'Accept': ('text/html,application/xhtml+xml,application/xml;q=0.9,'
               'image/avif,image/webp,image/apng,*/*;q=0.8'),
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept-Encoding': 'gzip, deflate',
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
    'Upgrade-Insecure-Requests': '1',
}

BOT_DETECTION_STATUSES = (403, 429)

LOCAL_NOT_FOUND = 'Local file not found'
SOFT_404 = 'Soft 404 (page shows not found content)'
TIMEOUT = 'Timeout'
HEAD_FALLBACK_NOTE = 'Passed via HEAD request'


class CheckResult:
    """Outcome of checking one unique href"""

    def __init__(self, ok, status=None, reason=None, warning=False, note=None):
        self.ok = ok
        self.status = status
        self.reason = reason
        self.warning = warning
        self.note = note

    def __eq__(self, other):
        if not isinstance(other, CheckResult):
            return NotImplemented
        return vars(self) == vars(other)

    def __repr__(self):
        fields = ', '.join(f"{k}={v!r}" for k, v in vars(self).items() if v is not None)
        return f"CheckResult({fields})"


def is_connection_reset(error, depth=0):
    """Check if a request error was caused by the peer resetting the connection"""
    if isinstance(error, ConnectionResetError):
        return True
    if depth > 5:
        return False
    # requests and urllib3 wrap the socket error in args, .reason or the cause
    nested = list(error.args) + [getattr(error, 'reason', None), error.__cause__, error.__context__]
    return any(isinstance(n, BaseException) and is_connection_reset(n, depth + 1) for n in nested)


class LinkChecker:
    def __init__(self, config, session=None, executor=None):
        self.config = config
        self.site_dir = os.path.abspath(config.site_dir)
        self.session = session or self._create_session()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.concurrency, thread_name_prefix='link-check')

    def _create_session(self):
        """Session with connection pooling sized to the concurrency limit"""
        session = requests.Session()
        session.headers.update(BROWSER_HEADERS)
        adapter = DeadlineAdapter(pool_maxsize=self.config.concurrency)
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        return session

    def close(self):
        self.executor.shutdown(wait=True)
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    async def check(self, target):
        """Check one target, routing it to the network or the filesystem"""
        if is_external(target.href):
            result = await self.check_url(target.href)
        else:
            result = self.check_local_path(target.href, target.document_path)

        if result.ok:
            logger.debug(f"OK: {target.href}")
        else:
            logger.debug(f"BROKEN: {target.href} ({result.reason})")
        return result

    def resolve_local_path(self, href, document_path):
        """Map a local href to a path inside the site directory"""
        path = unquote(href.split('#', 1)[0].split('?', 1)[0])
        if path.startswith('/'):
            resolved = os.path.join(self.site_dir, path.lstrip('/'))
        else:
            resolved = os.path.join(os.path.dirname(document_path), path)
        return os.path.normpath(resolved)

    def check_local_path(self, href, document_path):
        """Check if a local link points at an existing file"""
        resolved = self.resolve_local_path(href, document_path)
        candidates = (resolved, resolved + '.html', os.path.join(resolved, 'index.html'))
        if any(os.path.exists(candidate) for candidate in candidates):
            return CheckResult(ok=True)
        return CheckResult(ok=False, reason=LOCAL_NOT_FOUND)

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, partial(func, *args))

    def _get(self, url):
        """GET a URL and return (status, content type, body)

        The body is only read for successful HTML responses, and is None when
        it could not be read. Raises ReadTimeout when the whole exchange takes
        longer than the configured timeout.
        """
        with RequestDeadline(self.config.timeout, url):
            response = self.session.get(url, timeout=self.config.timeout,
                                        allow_redirects=True, stream=True)
            try:
                content_type = response.headers.get('content-type', '')
                body = None
                if response.status_code < 400 and 'text/html' in content_type.lower():
                    try:
                        body = response.text
                    except requests.exceptions.RequestException as e:
                        logger.debug(f"Could not read body of {url}: {e}")
                return response.status_code, content_type, body
            finally:
                response.close()

    def _head(self, url):
        with RequestDeadline(self.config.timeout, url):
            response = self.session.head(url, timeout=self.config.timeout, allow_redirects=True)
            response.close()
        return response.status_code

    async def _head_succeeds(self, url):
        try:
            status = await self._run_blocking(self._head, url)
        except requests.exceptions.RequestException as e:
            logger.debug(f"HEAD fallback failed for {url}: {e}")
            return False
        return status < 400

    async def check_url(self, url):
        """Check an external URL, retrying timeouts and connection resets"""
        attempt = 0
        while True:
            try:
                status, _, body = await self._run_blocking(self._get, url)
                break
            except requests.exceptions.Timeout:
                if attempt >= self.config.retries:
                    return CheckResult(ok=False, status=0, reason=TIMEOUT)
                logger.debug(f"Timeout on {url}, retrying ({attempt + 1}/{self.config.retries})")
            except requests.exceptions.RequestException as e:
                if not is_connection_reset(e) or attempt >= self.config.retries:
                    return CheckResult(ok=False, status=0, reason=str(e))
                logger.debug(f"Connection reset on {url}, retrying ({attempt + 1}/{self.config.retries})")
            attempt += 1
            await asyncio.sleep(self.config.retry_delay)

        return await self._classify_response(url, status, body)

    async def _classify_response(self, url, status, body):
        if status in BOT_DETECTION_STATUSES:
            # Often an anti-crawler block rather than a missing page; some
            # servers answer HEAD even when they refuse GET
            if await self._head_succeeds(url):
                return CheckResult(ok=True, status=status, note=HEAD_FALLBACK_NOTE)
            return CheckResult(ok=True, warning=True, status=status,
                               reason=f"HTTP {status} (likely bot detection - verify manually)")

        if status >= 400:
            return CheckResult(ok=False, status=status, reason=f"HTTP {status}")

        if body is not None and is_soft_not_found(
                body, self.config.soft_not_found_patterns,
                max_title_length=self.config.max_title_length,
                max_heading_length=self.config.max_heading_length):
            return CheckResult(ok=False, status=status, reason=SOFT_404)

        return CheckResult(ok=True, status=status)
