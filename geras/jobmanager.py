"""A fixed-size worker pool that runs jobs and routes their metrics by region."""

from __future__ import annotations

import queue
import sys
import threading
import time
from typing import Mapping, Protocol, Sequence, runtime_checkable

from geras.logger import Logger, LogLevel, get as get_logger, init as init_logger
from geras.types import CloudWatchMetric

DEFAULT_BUFFER_SIZE = 100
"""How many jobs may be pending before add_job blocks."""

_POLL_INTERVAL = 0.01


class Context:
    """A cancellation signal with an optional deadline, cancelled along with its parent."""

    def __init__(self, parent: Context | None = None, timeout: float | None = None) -> None:
        self._parent = parent
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: set[Context] = set()
        deadline = None if timeout is None else time.monotonic() + timeout
        if parent is not None and parent._deadline is not None:
            deadline = parent._deadline if deadline is None else min(deadline, parent._deadline)
        self._deadline = deadline
        if parent is not None:
            parent._attach(self)

    def _attach(self, child: Context) -> None:
        with self._lock:
            cancelled = self._event.is_set()
            if not cancelled:
                self._children.add(child)
        if cancelled:
            child.cancel()

    def _detach(self, child: Context) -> None:
        with self._lock:
            self._children.discard(child)

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            self._event.set()
            children, self._children = self._children, set()
        for child in children:
            child.cancel()
        if self._parent is not None:
            self._parent._detach(self)

    def is_cancelled(self) -> bool:
        """Return True once the context was cancelled or its deadline passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel()
            return True
        return False

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` seconds pass; return whether it was cancelled."""
        end = None if timeout is None else time.monotonic() + timeout
        while True:
            if self.is_cancelled():
                return True
            now = time.monotonic()
            if end is not None and now >= end:
                return False
            slices = [limit - now for limit in (self._deadline, end) if limit is not None]
            self._event.wait(min(slices) if slices else None)

    def with_timeout(self, timeout: float) -> Context:
        """Derive a child context that is also cancelled after ``timeout`` seconds."""
        return Context(self, timeout)


@runtime_checkable
class Job(Protocol):
    """A unit of work that yields metrics for one region."""

    job_name: str
    region: str

    def execute(self, ctx: Context) -> Sequence[CloudWatchMetric] | None:
        """Run the job; raise on failure."""
        ...


class JobManager:
    """Runs jobs on a pool of worker threads with per-job timeouts.

    Metrics are delivered to the queue registered for the job's region in
    ``metric_map``. Cancelling ``parent_ctx`` stops every worker.
    """

    def __init__(
        self,
        parent_ctx: Context,
        workers: int,
        job_timeout: float,
        metric_map: Mapping[str, queue.Queue],
        log: Logger | None = None,
    ) -> None:
        if log is None:
            init_logger(LogLevel.INFO, sys.stdout)
            log = get_logger()
        self._parent = parent_ctx
        self._job_timeout = job_timeout
        self._jobs: queue.Queue[Job] = queue.Queue(maxsize=DEFAULT_BUFFER_SIZE)
        self._metric_map = metric_map
        self._log = log
        self._closed = threading.Event()

        self._log.info("starting %d workers", workers)
        self._threads = [
            threading.Thread(target=self._worker, args=(index,), name=f"worker-{index}", daemon=True)
            for index in range(workers)
        ]
        for thread in self._threads:
            thread.start()

    def add_job(self, job: Job) -> None:
        """Queue ``job``, blocking while the buffer is full; drop it if the parent is cancelled."""
        if self._closed.is_set():
            raise RuntimeError("job manager is closed")
        if self._parent.is_cancelled():
            self._log.debug("parent context cancelled—dropping job %s (region=%s)", job.job_name, job.region)
            return
        while True:
            try:
                self._jobs.put(job, timeout=_POLL_INTERVAL)
                break
            except queue.Full:
                if self._parent.is_cancelled():
                    self._log.debug(
                        "parent context cancelled—dropping job %s (region=%s)", job.job_name, job.region
                    )
                    return
        self._log.debug("enqueued job %s (region=%s)", job.job_name, job.region)

    def wait(self) -> None:
        """Accept no more jobs and block until every worker has exited."""
        self._closed.set()
        self._log.info("waiting for workers to finish")
        for thread in self._threads:
            thread.join()
        self._log.info("all workers exited")

    def log_error(self, err: object) -> None:
        self._log.error("jobmanager: error: %v", err)

    def _worker(self, index: int) -> None:
        self._log.info("worker-%d started", index)
        while True:
            if self._parent.is_cancelled():
                self._log.info("worker-%d shutting down (parent context done)", index)
                return
            try:
                job = self._jobs.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._closed.is_set():
                    self._log.info("worker-%d shutting down (job channel closed)", index)
                    return
                continue
            if not self._run(index, job):
                return

    def _run(self, index: int, job: Job) -> bool:
        """Execute one job and dispatch its metrics; return False if interrupted."""
        self._log.info("worker-%d executing job %s", index, job.job_name)
        ctx = self._parent.with_timeout(self._job_timeout)
        try:
            result = job.execute(ctx)
        except Exception as err:
            self.log_error(f"worker-{index} job {job.job_name} returned error: {err}")
            return True
        finally:
            ctx.cancel()
        metrics = list(result or ())
        self._log.info("worker-%d job %s returned %d metrics", index, job.job_name, len(metrics))

        for metric in metrics:
            if self._parent.is_cancelled():
                self._log.info("worker-%d interrupted before dispatching all metrics", index)
                return False
            channel = self._metric_map.get(job.region)
            if channel is None:
                self._log.error("no metric channel for region %s", job.region)
                continue
            if not self._send(channel, metric):
                self._log.info("worker-%d interrupted while sending metric", index)
                return False
            self._log.debug("worker-%d dispatched metric %s for region %s", index, metric.name, job.region)
        return True

    def _send(self, channel: queue.Queue, metric: CloudWatchMetric) -> bool:
        while not self._parent.is_cancelled():
            try:
                channel.put(metric, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False