"""Unit tests for logging helpers and logging hygiene of the package.

Coverage:
- configure_logging: owned handlers, force, env overrides, file output
- Config.configure_logging wiring from the logging section
- stage_timer / ProgressLogger / RunSummary output as the search and
  comparison code emit it
- No print() and no logging.basicConfig() under src/
"""

import ast
import io
import logging
import sys
import types
from pathlib import Path

import pytest

# Add repo root to path
ROOT_DIR = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT_DIR))

import src.logging_utils as logging_utils
from src.config_loader import Config
from src.logging_utils import (
    ProgressLogger,
    RunSummary,
    configure_logging,
    format_count,
    format_duration,
    stage_timer,
    truncate_list,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)

    @property
    def messages(self):
        return [r.getMessage() for r in self.records]


def _owned(root=None):
    root = root or logging.getLogger()
    return [h for h in root.handlers if getattr(h, logging_utils._OWNED_HANDLER_ATTR, False)]


@pytest.fixture()
def clean_logging(monkeypatch):
    """Reset configure_logging state and route console output to a buffer."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    buf = io.StringIO()
    # Patch the module's own sys reference: pytest restores the global
    # sys.stdout to its capture stream between fixture setup and the test call.
    monkeypatch.setattr(logging_utils, "sys", types.SimpleNamespace(stdout=buf))
    monkeypatch.setattr(logging_utils, "_configured", False)
    yield buf
    root = logging.getLogger()
    for handler in _owned(root):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture()
def listed_logger():
    handler = ListHandler()
    logger = logging.getLogger("sequencer_test_output")
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    yield logger, handler
    logger.handlers = []


class FakeClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


# =============================================================================
# configure_logging
# =============================================================================

class TestConfigureLogging:

    def test_installs_one_console_handler(self, clean_logging):
        assert configure_logging("INFO") is True

        assert len(_owned()) == 1
        logging.getLogger("src.sequencing.generator").info("perceptual: found for length 8")
        assert "[src.sequencing.generator] perceptual: found for length 8" in clean_logging.getvalue()

    def test_second_call_is_noop_without_force(self, clean_logging):
        configure_logging("INFO")

        assert configure_logging("DEBUG") is False
        assert len(_owned()) == 1
        assert _owned()[0].level == logging.INFO

    def test_force_replaces_owned_handlers_only(self, clean_logging):
        foreign = logging.NullHandler()
        root = logging.getLogger()
        root.addHandler(foreign)
        try:
            configure_logging("INFO")
            assert configure_logging("WARNING", force=True) is True

            assert len(_owned()) == 1
            assert _owned()[0].level == logging.WARNING
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)

    def test_log_level_env_wins(self, clean_logging, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")

        configure_logging("DEBUG")
        logging.getLogger("src.sequencing.generator").warning("perceptual: timeout for length 8")

        assert "timeout" not in clean_logging.getvalue()

    def test_unknown_level_rejected(self, clean_logging):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("CHATTY")

    def test_file_receives_debug(self, clean_logging, tmp_path):
        log_file = tmp_path / "logs" / "sequencer.log"

        configure_logging("WARNING", str(log_file))
        logging.getLogger("src.sequencing.validator").debug("Sequence of 3 items failed 2/7 constraints")
        for handler in _owned():
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "[src.sequencing.validator:" in text
        assert "failed 2/7 constraints" in text
        assert "failed 2/7" not in clean_logging.getvalue()

    def test_config_logging_section(self, clean_logging, tmp_path):
        log_file = tmp_path / "run.log"
        config_path = tmp_path / "config.yaml"
        config_path.write_text(f"logging:\n  level: WARNING\n  file: {log_file.as_posix()}\n", encoding="utf-8")

        assert Config(str(config_path)).configure_logging() is True

        levels = sorted(h.level for h in _owned())
        assert levels == [logging.DEBUG, logging.WARNING]
        assert log_file.exists()


# =============================================================================
# Formatting helpers
# =============================================================================

class TestFormatting:

    @pytest.mark.parametrize("n,expected", [
        (0, "0 nodes"),
        (1, "1 node"),
        (200_000, "200,000 nodes"),
    ])
    def test_format_count(self, n, expected):
        assert format_count(n, "node") == expected

    def test_format_count_irregular_plural(self):
        assert format_count(8, "branch", "branches") == "8 branches"
        assert format_count(1, "branch", "branches") == "1 branch"

    @pytest.mark.parametrize("seconds,expected", [
        (0.25, "250ms"),
        (4.23, "4.2s"),
        (194, "3m14s"),
        (3720, "1h02m"),
        (-1, "0ms"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_truncate_list(self):
        assert truncate_list([]) == "(none)"
        assert truncate_list(["s1", "s2"]) == "s1, s2"
        assert truncate_list(["s1", "s2", "s3", "s4", "s5"], max_items=3) == "s1, s2, s3 (+2 more)"
        assert truncate_list([4, 5], format_fn=lambda n: f"max_run={n}") == "max_run=4, max_run=5"


# =============================================================================
# stage_timer / ProgressLogger / RunSummary
# =============================================================================

class TestStageTimer:

    def test_logs_completion(self, listed_logger):
        logger, handler = listed_logger

        with stage_timer("Perceptually random generation", logger):
            pass

        assert handler.messages[0] == "Perceptually random generation started"
        assert handler.messages[-1].startswith("Perceptually random generation completed in ")
        assert handler.records[-1].levelno == logging.INFO

    def test_logs_completion_when_stage_raises(self, listed_logger):
        logger, handler = listed_logger

        with pytest.raises(RuntimeError):
            with stage_timer("Truly random generation", logger):
                raise RuntimeError("catalog vanished")

        assert handler.messages[-1].startswith("Truly random generation completed in ")


class TestProgressLogger:

    def test_count_based_lines(self, listed_logger, monkeypatch):
        logger, handler = listed_logger
        monkeypatch.setattr(logging_utils.time, "perf_counter", FakeClock(0.1))

        progress = ProgressLogger(logger, total=100, label="search", unit="nodes", interval_s=1_000, every_n=50)
        for _ in range(100):
            progress.update()
        progress.finish()

        assert len(handler.records) == 3
        assert handler.messages[0].startswith("search: 50/100 (50.0%) nodes | ")
        assert handler.messages[1].startswith("search: 100/100 (100.0%) nodes | ")
        assert handler.messages[2].startswith("search complete: 100 nodes in ")

    def test_time_based_lines_without_total(self, listed_logger, monkeypatch):
        logger, handler = listed_logger
        monkeypatch.setattr(logging_utils.time, "perf_counter", FakeClock(1.0))

        progress = ProgressLogger(logger, total=None, label="search", unit="nodes", interval_s=1.0, every_n=10_000)
        for _ in range(3):
            progress.update()

        assert len(handler.messages) == 3
        for line in handler.messages:
            assert line.startswith("search: ")
            assert "/" not in line.split("|")[0]

    def test_finish_with_detail(self, listed_logger):
        logger, handler = listed_logger

        progress = ProgressLogger(logger, total=0, label="search", unit="nodes")
        progress.update()
        progress.finish("budget exhausted")

        assert handler.messages[0] == "budget exhausted"
        assert handler.messages[1].startswith("search complete: 1 node in ")


class TestRunSummary:

    def test_block_layout(self, listed_logger):
        logger, handler = listed_logger

        summary = RunSummary("Sequence comparison", logger)
        summary.add("truly_random_status", "found")
        summary.add("perceptually_random_violations", 0)
        summary.add("ratio", 0.5)
        summary.log()

        assert handler.messages[0] == "--- Sequence comparison ---"
        rows = [line.split(" : ") for line in handler.messages[1:]]
        assert [(key.strip(), value) for key, value in rows[:3]] == [
            ("truly_random_status", "found"),
            ("perceptually_random_violations", "0"),
            ("ratio", "0.50"),
        ]
        assert rows[3][0].strip() == "elapsed"
        assert len({line.index(" : ") for line in handler.messages[1:]}) == 1

    def test_empty_summary(self, listed_logger):
        logger, handler = listed_logger

        RunSummary("Nothing", logger).log(logging.DEBUG)

        assert handler.messages[0] == "--- Nothing ---"
        assert handler.records[0].levelno == logging.DEBUG


# =============================================================================
# Package hygiene
# =============================================================================

def _src_files():
    return sorted((ROOT_DIR / "src").rglob("*.py"))


def test_no_print_calls_in_src():
    offenders = []
    for path in _src_files():
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "print":
                offenders.append(f"{path.name}:{node.lineno}")
    assert offenders == []


def test_no_basicconfig_in_src():
    offenders = [p.name for p in _src_files() if "basicConfig(" in p.read_text(encoding="utf-8")]
    assert offenders == []
