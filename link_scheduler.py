"""
Link Scheduler

Runs a check coroutine over a batch of targets with a bounded number of
checks in flight. Targets sharing an href are checked once and the result
is cached for the rest of the run.

All scheduler state lives on the event loop and is only touched between
awaits, so it needs no locking.
"""

import asyncio
import logging
from collections import OrderedDict, deque

from link_checker import CheckResult

logger = logging.getLogger(__name__)


class LinkScheduler:
    def __init__(self, check, concurrency, progress_callback=None):
        """
        Args:
            check: coroutine function taking a Target and returning a CheckResult
            concurrency: maximum number of checks in flight
            progress_callback: optional callback(completed, total)
        """
        if concurrency <= 0:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}")
        self.check = check
        self.concurrency = concurrency
        self.progress_callback = progress_callback

        self.cache = {}
        self.queue = deque()
        self.active = 0
        self.max_active = 0
        self.completed = 0
        self.total = 0
        self._tasks = set()
        self._done = None

    @staticmethod
    def unique_targets(targets):
        """First target of each href, in first-seen order"""
        unique = OrderedDict()
        for target in targets:
            unique.setdefault(target.href, target)
        return list(unique.values())

    async def run(self, targets):
        """Check every unique href and return a dict of href -> CheckResult"""
        self.queue = deque(t for t in self.unique_targets(targets) if t.href not in self.cache)
        self.total = len(self.queue)
        self.completed = 0
        self._done = asyncio.Event()

        logger.info(f"Checking {self.total} unique links with concurrency {self.concurrency}")

        if not self.queue:
            return dict(self.cache)

        self._admit()
        await self._done.wait()
        return dict(self.cache)

    def _admit(self):
        """Start queued checks until the concurrency limit is reached"""
        while self.active < self.concurrency and self.queue:
            target = self.queue.popleft()
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            task = asyncio.ensure_future(self._run_one(target))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_one(self, target):
        try:
            result = await self.check(target)
        except Exception as e:
            logger.exception(f"Unexpected error checking {target.href}")
            result = CheckResult(ok=False, status=0, reason=str(e) or type(e).__name__)

        self.cache[target.href] = result
        self.active -= 1
        self.completed += 1
        if self.progress_callback is not None:
            self.progress_callback(self.completed, self.total)

        self._admit()
        if not self.queue and self.active == 0:
            self._done.set()
