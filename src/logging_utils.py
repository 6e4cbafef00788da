"""
Logging helpers for the sequencer.

Library modules log through logging.getLogger(__name__) and never configure
handlers themselves. Whoever drives a run (usually via
Config.configure_logging()) installs the handlers once with configure_logging().

Helpers used by the search and comparison code:
- stage_timer: time a named stage
- ProgressLogger: periodic node-expansion progress
- RunSummary: aligned key/value block at the end of a comparison
- format_count / truncate_list / format_duration: message formatting
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

# Handlers installed by configure_logging carry this attribute so that a
# reconfiguration only replaces its own handlers.
_OWNED_HANDLER_ATTR = "_sequencer_owned"
_configured = False

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s:%(lineno)d] %(message)s"


def _owned_handlers(root: logging.Logger) -> List[logging.Handler]:
    return [h for h in root.handlers if getattr(h, _OWNED_HANDLER_ATTR, False)]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    force: bool = False,
) -> bool:
    """
    Install a console handler (and optionally a file handler) on the root logger.

    LOG_LEVEL and LOG_FILE environment variables win over the arguments.
    Repeated calls are no-ops unless force=True.

    Args:
        level: Console level name
        log_file: File receiving DEBUG and above; parent dirs are created
        force: Replace handlers from an earlier call

    Returns:
        True if handlers were (re)installed
    """
    global _configured
    if _configured and not force:
        return False

    level_name = os.getenv("LOG_LEVEL", level).upper()
    console_level = logging.getLevelName(level_name)
    if not isinstance(console_level, int):
        raise ValueError(f"Unknown log level {level_name!r}")
    log_file = os.getenv("LOG_FILE") or log_file

    root = logging.getLogger()
    for handler in _owned_handlers(root):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    setattr(console, _OWNED_HANDLER_ATTR, True)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        setattr(file_handler, _OWNED_HANDLER_ATTR, True)
        root.addHandler(file_handler)

    _configured = True
    logging.getLogger(__name__).debug(f"Logging to console at {level_name}, file={log_file or 'none'}")
    return True


def format_duration(seconds: float) -> str:
    """Compact duration: 850ms, 4.2s, 3m14s, 1h02m."""
    seconds = max(0.0, seconds)
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, sec = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m{sec:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m"


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """'1 node', '1,024 nodes', '3 branches' (with plural='branches')."""
    word = singular if n == 1 else (plural or f"{singular}s")
    return f"{n:,} {word}"


def truncate_list(values: Sequence[Any], max_items: int = 3, format_fn: Callable[[Any], str] = str) -> str:
    """Join the first max_items values, noting how many were left out."""
    if not values:
        return "(none)"
    shown = ", ".join(format_fn(v) for v in values[:max_items])
    hidden = len(values) - max_items
    return f"{shown} (+{hidden} more)" if hidden > 0 else shown


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Log '<stage> completed in <duration>' at INFO, also when the stage raises."""
    logger = logger or logging.getLogger(__name__)
    logger.debug(f"{stage_name} started")
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(f"{stage_name} completed in {format_duration(time.perf_counter() - start)}")


class ProgressLogger:
    """
    Rate-limited progress reporting for long loops.

    A line is emitted whenever every_n units have passed since the last line
    or interval_s seconds have elapsed, whichever comes first. finish() always
    logs a closing line with the total and average rate.
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: Optional[int],
        label: str,
        unit: str = "items",
        interval_s: float = 15.0,
        every_n: int = 500,
        level: int = logging.INFO,
    ) -> None:
        self.logger = logger
        self.total = total if total else None
        self.label = label
        self.unit = unit
        self.interval_s = interval_s
        self.every_n = every_n
        self.level = level
        self.count = 0
        self._started = time.perf_counter()
        self._last_time = self._started
        self._last_count = 0

    def _rate(self, now: float) -> float:
        elapsed = now - self._started
        return self.count / elapsed if elapsed > 0 else 0.0

    def update(self, n: int = 1) -> None:
        self.count += n
        if self.count - self._last_count < self.every_n:
            now = time.perf_counter()
            if now - self._last_time < self.interval_s:
                return
        else:
            now = time.perf_counter()
        done = f"{self.count:,}/{self.total:,} ({self.count / self.total:.1%})" if self.total else f"{self.count:,}"
        self.logger.log(self.level, f"{self.label}: {done} {self.unit} | {self._rate(now):.1f} {self.unit}/s")
        self._last_time = now
        self._last_count = self.count

    def finish(self, detail: Optional[str] = None) -> None:
        if detail:
            self.logger.log(self.level, detail)
        now = time.perf_counter()
        self.logger.log(
            self.level,
            f"{self.label} complete: {format_count(self.count, self.unit.rstrip('s'), self.unit)} "
            f"in {format_duration(now - self._started)} ({self._rate(now):.1f} {self.unit}/s)",
        )


class RunSummary:
    """
    Key/value results logged as one block.

    Usage:
        summary = RunSummary("Sequence comparison", logger)
        summary.add("perceptually_random_status", "found")
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Union[int, float, str]] = {}
        self._started = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def log(self, level: int = logging.INFO) -> None:
        width = max((len(k) for k in self.metrics), default=0)
        self.logger.log(level, f"--- {self.title} ---")
        for key, value in self.metrics.items():
            shown = f"{value:.2f}" if isinstance(value, float) else str(value)
            self.logger.log(level, f"  {key.ljust(width)} : {shown}")
        self.logger.log(level, f"  {'elapsed'.ljust(width)} : {format_duration(time.perf_counter() - self._started)}")
