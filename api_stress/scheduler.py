"""
Rate-controlled stress runs.

Each endpoint runs for ``duration`` one-second ticks. On every tick up to
``req_per_sec`` requests are admitted through a ConcurrencyLimiter sized to
``max_running_req``; requests denied because the limiter is full are skipped,
not queued. After the last tick the run waits for every admitted request
before reporting.
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from api_stress.config import EndpointConfig, StressConfig
from api_stress.errors import ConfigurationError, StressError
from api_stress.executor import execute_request
from api_stress.limiter import ConcurrencyLimiter
from api_stress.pcp import ExpressionEngine
from api_stress.report import (
    print_config_error,
    print_fail_exit,
    print_request_error,
    print_run_start,
    print_summary,
)
from api_stress.validator import validate

AbortFn = Callable[[EndpointConfig, Exception], None]


def abort_process(endpoint: EndpointConfig, error: Exception) -> None:
    """Stop the whole process on the first failure of a failExit endpoint."""
    print_fail_exit(endpoint.name, error)
    # os._exit works from worker threads, sys.exit would only end the thread
    os._exit(1)


@dataclass
class RunSummary:
    name: str
    total_run: int = 0
    errored: int = 0
    total_seconds: float = 0.0
    avg_request_ms: Optional[float] = None
    config_error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.config_error is None and self.errored == 0


class PendingTasks:
    """Counts admitted tasks that have not finished yet; wait() blocks until none are left."""

    def __init__(self):
        self.count = 0
        self.cond = threading.Condition()

    def add(self) -> None:
        with self.cond:
            self.count += 1

    def done(self) -> None:
        with self.cond:
            self.count -= 1
            if self.count == 0:
                self.cond.notify_all()

    def wait(self) -> None:
        with self.cond:
            self.cond.wait_for(lambda: self.count == 0)


class RunStatistics:
    """Counters for one endpoint run, updated by finishing requests."""

    def __init__(self, name: str):
        self.name = name
        self.total_run = 0
        self.errored = 0
        self.total_request_ms = 0.0
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        self.lock = threading.Lock()

    def start(self) -> None:
        self.started_at = time.perf_counter()

    def finish(self) -> None:
        self.finished_at = time.perf_counter()

    def record(self, elapsed_ms: float, error: Optional[Exception]) -> None:
        with self.lock:
            self.total_run += 1
            self.total_request_ms += elapsed_ms
            if error is not None:
                self.errored += 1

    @property
    def total_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return end - self.started_at

    @property
    def avg_request_ms(self) -> Optional[float]:
        """Mean request time, or None when nothing was admitted."""
        with self.lock:
            if self.total_run == 0:
                return None
            return self.total_request_ms / self.total_run

    def summary(self) -> RunSummary:
        return RunSummary(
            name=self.name,
            total_run=self.total_run,
            errored=self.errored,
            total_seconds=self.total_seconds,
            avg_request_ms=self.avg_request_ms,
        )


def run_endpoint(
    endpoint: EndpointConfig,
    tick_seconds: float = 1.0,
    abort: AbortFn = abort_process,
    engine: Optional[ExpressionEngine] = None,
) -> RunStatistics:
    """
    Stress one endpoint and report its statistics.

    Args:
        endpoint: Endpoint to run, with any overrides already applied
        tick_seconds: Pause between ticks
        abort: Called with the first error of a failExit endpoint
        engine: Expression engine for pcp checks (None = PcpEngine)

    Returns:
        The run's statistics, complete once every admitted request finished

    Raises:
        ConfigurationError: The endpoint cannot be run as configured
    """
    endpoint.check()
    body = endpoint.request_body()

    print_run_start(endpoint)

    limiter = ConcurrencyLimiter(endpoint.max_running_req)
    stats = RunStatistics(endpoint.name)
    pending = PendingTasks()

    def task():
        error: Optional[Exception] = None
        try:
            try:
                req_start = time.perf_counter()
                try:
                    outcome = execute_request(endpoint, body=body)
                    validate(outcome, endpoint.expect, name=endpoint.name, engine=engine)
                except StressError as e:
                    error = e
                # anything else still only fails this one request
                except Exception as e:
                    error = StressError(f"Unexpected {type(e).__name__}: {e}")
                elapsed_ms = (time.perf_counter() - req_start) * 1000

                stats.record(elapsed_ms, error)
                if error is not None:
                    print_request_error(endpoint.name, error)
            finally:
                limiter.release()

            if error is not None and endpoint.fail_exit:
                abort(endpoint, error)
        finally:
            pending.done()

    stats.start()
    executor = ThreadPoolExecutor(
        max_workers=max(1, endpoint.max_running_req),
        thread_name_prefix=f"stress-{endpoint.name}",
    )
    try:
        for _ in range(endpoint.duration):
            for _ in range(endpoint.req_per_sec):
                # a full limiter skips this request, it is not queued
                if limiter.try_admit():
                    pending.add()
                    executor.submit(task)
            time.sleep(tick_seconds)

        pending.wait()
    finally:
        executor.shutdown(wait=True)
    stats.finish()

    print_summary(stats.summary())
    return stats


def select_endpoints(config: StressConfig, only: Optional[str] = None) -> List[EndpointConfig]:
    """Endpoints to run: all of them, or just the one named ``only``."""
    if not only:
        return list(config.apis)
    return [api for api in config.apis if api.name == only]


def run_all(
    config: StressConfig,
    host: Optional[str] = None,
    scheme: Optional[str] = None,
    only: Optional[str] = None,
    extra_headers: Optional[Dict[str, str]] = None,
    tick_seconds: float = 1.0,
    abort: AbortFn = abort_process,
    engine: Optional[ExpressionEngine] = None,
) -> List[RunSummary]:
    """
    Run the selected endpoints one after another.

    Overrides are applied to a per-run copy of each endpoint; ``config`` is
    never changed.

    Returns:
        One RunSummary per selected endpoint, in config order
    """
    summaries = []
    for api in select_endpoints(config, only):
        endpoint = api.with_overrides(host=host, scheme=scheme, headers=extra_headers)
        try:
            stats = run_endpoint(endpoint, tick_seconds=tick_seconds, abort=abort, engine=engine)
        except ConfigurationError as e:
            print_config_error(endpoint.name, e)
            if endpoint.fail_exit:
                abort(endpoint, e)
            summaries.append(RunSummary(name=endpoint.name, config_error=str(e)))
            continue
        summaries.append(stats.summary())
    return summaries
