"""
Request Deadline

The timeout given to requests only limits each connect and each socket read,
so a server that trickles a byte at a time can hold a request open for much
longer. RequestDeadline puts a limit on the whole request instead: when it
expires, the socket of the connection the current thread is using is shut
down, which makes the blocked read fail, and the request is reported as a
requests ReadTimeout.

Only sessions using DeadlineAdapter are covered, since the adapter's
connections are the ones that register themselves with the running deadline.
"""

import contextlib
import logging
import socket
import threading

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

logger = logging.getLogger(__name__)

# Deadlines in progress, keyed by the ident of the thread making the request
_active_deadlines = {}


class RequestDeadline:
    """Context manager bounding everything requests does inside it

    Must be entered on the thread that makes the request.
    """

    def __init__(self, timeout, url=None):
        self.timeout = timeout
        self.url = url
        self.expired = False
        self.connection = None
        self.lock = threading.Lock()
        self.timer = None
        self.thread_id = None

    def __enter__(self):
        self.thread_id = threading.get_ident()
        _active_deadlines[self.thread_id] = self
        self.timer = threading.Timer(self.timeout, self._expire)
        self.timer.daemon = True
        self.timer.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.timer.cancel()
        _active_deadlines.pop(self.thread_id, None)
        with self.lock:
            self.connection = None
        if self.expired:
            # Replaces whatever error the aborted read raised, or a partial
            # result the caller recovered from
            raise requests.exceptions.ReadTimeout(
                f"Request to {self.url} exceeded its {self.timeout:g}s deadline")
        return False

    def watch(self, connection):
        """Track the connection in use, aborting it at once if already expired"""
        with self.lock:
            self.connection = connection
            if self.expired:
                _abort(connection)

    def _expire(self):
        with self.lock:
            self.expired = True
            logger.debug(f"Deadline of {self.timeout:g}s passed for {self.url}")
            if self.connection is not None:
                _abort(self.connection)


def _abort(connection):
    sock = getattr(connection, 'sock', None)
    if sock is None:
        return
    with contextlib.suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


def _watch_current_thread(connection):
    deadline = _active_deadlines.get(threading.get_ident())
    if deadline is not None:
        deadline.watch(connection)


class _DeadlineConnectionMixin:
    def connect(self):
        super().connect()
        _watch_current_thread(self)

    def request(self, *args, **kwargs):
        # Pooled connections are reused without calling connect() again
        _watch_current_thread(self)
        return super().request(*args, **kwargs)


class DeadlineHTTPConnection(_DeadlineConnectionMixin, HTTPConnection):
    pass


class DeadlineHTTPSConnection(_DeadlineConnectionMixin, HTTPSConnection):
    pass


class DeadlineHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = DeadlineHTTPConnection


class DeadlineHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = DeadlineHTTPSConnection


POOL_CLASSES_BY_SCHEME = {
    'http': DeadlineHTTPConnectionPool,
    'https': DeadlineHTTPSConnectionPool,
}


class DeadlineAdapter(HTTPAdapter):
    """HTTPAdapter whose connections can be aborted by a RequestDeadline"""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = POOL_CLASSES_BY_SCHEME

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        manager = super().proxy_manager_for(proxy, **proxy_kwargs)
        # SOCKS managers bring their own connection classes
        if not proxy.lower().startswith('socks'):
            manager.pool_classes_by_scheme = POOL_CLASSES_BY_SCHEME
        return manager
