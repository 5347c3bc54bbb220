"""
Timestamped console output for the modbuild CLI.

Every line carries the time since the CLI started (MM:SS.cc):

    00:00.02 modbuild v0.1.0
    00:00.03 [1/1] Planning 2 module sources for app...
    00:00.05       Done (0.02s)
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None  # None means sys.stdout at write time
_verbose: bool = False


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """Start the CLI clock, optionally redirecting output."""
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    global _verbose
    _verbose = verbose


def format_timestamp() -> str:
    """Elapsed time since init_timer() as MM:SS.cc."""
    if _start_time is None:
        init_timer()
    elapsed = time.time() - _start_time  # type: ignore
    return f"{int(elapsed // 60):02d}:{elapsed % 60:05.2f}"


def _print(message: str) -> None:
    stream = _output_stream if _output_stream is not None else sys.stdout
    stream.write(f"{format_timestamp()} {message}\n")
    stream.flush()


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")


def log_phase(phase: int, total: int, message: str) -> None:
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, verbose_only: bool = False) -> None:
    """Indented line under the current phase; verbose_only lines need -v."""
    if verbose_only and not _verbose:
        return
    _print(f"      {message}")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


class TimedLogger:
    """
    Log a phase line on entry and its duration on success.

    Usage:
        with TimedLogger("Planning 2 module sources for app", phase=(1, 1)):
            plan = plan_module_build(scope, caches)
    """

    def __init__(self, operation: str, phase: tuple[int, int]):
        self.operation = operation
        self.phase = phase
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        log_phase(self.phase[0], self.phase[1], f"{self.operation}...")
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            log_detail(f"Done ({time.time() - self.start_time:.2f}s)")
