"""Console output for stress runs."""

import os
import sys
from datetime import datetime

# ANSI color codes
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
CYAN = "\033[96m"
BOLD = "\033[1m"
RESET = "\033[0m"

_color_enabled = not os.getenv("NO_COLOR") and sys.stdout.isatty()


def set_color(enabled: bool) -> None:
    global _color_enabled
    _color_enabled = enabled


def paint(text: str, *codes: str) -> str:
    if not _color_enabled or not codes:
        return text
    return f"{''.join(codes)}{text}{RESET}"


def _emit(line: str) -> None:
    stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
    # flush so lines from worker threads are not interleaved in the buffer
    print(f"{stamp} {line}", flush=True)


def print_info(message: str) -> None:
    _emit(message)


def print_warning(message: str) -> None:
    _emit(paint(f"Warning: {message}", YELLOW))


def print_run_start(endpoint) -> None:
    _emit(paint(
        f"[api stress start] name = {endpoint.name} {endpoint.method} {endpoint.url} "
        f"reqPerSec = {endpoint.req_per_sec}, duration = {endpoint.duration} s, "
        f"maxRunningReq = {endpoint.max_running_req}",
        BLUE,
    ))


def print_request_error(name: str, error: Exception) -> None:
    _emit(paint(f"[Errored] {name}: {error}", RED))


def print_response_body(name: str, body: bytes) -> None:
    _emit(f"[log body] {name}: {body.decode('utf-8', errors='replace')}")


def print_config_error(name: str, error: Exception) -> None:
    _emit(paint(f"[config error] {name}: {error}", RED, BOLD))


def print_fail_exit(name: str, error: Exception) -> None:
    _emit(paint(f"[fail exit] {name}: {error}", RED, BOLD))


def print_summary(summary) -> None:
    """Print the one-line result of a finished endpoint run."""
    avg = "N/A" if summary.avg_request_ms is None else f"{summary.avg_request_ms:.0f} ms"
    _emit(paint(
        f"[api stress result] name = {summary.name} totalRun = {summary.total_run}, "
        f"errored = {summary.errored}, totalTime = {summary.total_seconds:.0f} s, "
        f"avgReqTime = {avg}",
        YELLOW,
    ))


def print_final_report(summaries) -> None:
    """Print a table with one row per endpoint after every run has finished."""
    if not summaries:
        print(paint("No endpoints were run", YELLOW))
        return

    width = max(8, max(len(s.name) for s in summaries))
    print()
    print(paint(f"{'Endpoint':<{width}}  {'Total':>7}  {'Failed':>7}  {'Time(s)':>8}  {'Avg(ms)':>9}  Result", BOLD))
    print("-" * (width + 52))
    for s in summaries:
        if s.config_error:
            result = paint("CONFIG ERROR", RED)
        elif s.errored:
            result = paint("FAIL", RED)
        else:
            result = paint("OK", GREEN)
        avg = "N/A" if s.avg_request_ms is None else f"{s.avg_request_ms:.1f}"
        print(f"{s.name:<{width}}  {s.total_run:>7}  {s.errored:>7}  {s.total_seconds:>8.1f}  {avg:>9}  {result}")
    print()
