"""Structured logging for the extraction pipeline.

Provides consistent console output with:
- Timestamps
- Log levels (DEBUG, INFO, WARNING, ERROR)
- Phase tracking (one phase per provider attempt)
- Structured data logging
- Optional per-document log files for later analysis

PipelineLogger owns the console handler shared by every extraction.
start_pipeline() hands out a PipelineRun holding one extraction's timers and
log file. Records carry the run id, and a run's file handler only accepts its
own records, so concurrent extractions never write into each other's files.
"""

import itertools
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

_run_ids = itertools.count(1)


class PipelineLogger:
    """Console logging shared by all extraction runs."""

    def __init__(self, name: str = "stix_extractor", verbose: bool = False):
        """Initialize the pipeline logger.

        Args:
            name: Logger name.
            verbose: If True, show DEBUG level logs.
        """
        self.logger = logging.getLogger(name)
        self.verbose = verbose

        if not self.logger.handlers:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ConsoleFormatter())
            console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            self.logger.addHandler(console_handler)

        self.logger.setLevel(logging.DEBUG)

    def set_verbose(self, verbose: bool):
        """Update verbose setting."""
        self.verbose = verbose
        for handler in self.logger.handlers:
            if isinstance(handler, logging.StreamHandler) and handler.stream == sys.stdout:
                handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    def start_pipeline(self, label: str, log_dir: str | Path | None = None) -> "PipelineRun":
        """Start logging one document extraction.

        Args:
            label: Document label, also the stem of the log file name.
            log_dir: Directory for this run's log file. If None, console only.

        Returns:
            The PipelineRun to log the rest of the extraction through.
        """
        run = PipelineRun(self.logger, next(_run_ids))
        if log_dir:
            run.open_log_file(Path(log_dir), label)
        run.info_line(f"[{run.ts()}] Extracting STIX: {label}")
        return run


class _RunFilter(logging.Filter):
    """Accepts only records logged by one run."""

    def __init__(self, run_id: int):
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "run_id", None) == self.run_id


class PipelineRun:
    """Logging context for a single extraction."""

    def __init__(self, logger: logging.Logger, run_id: int):
        self.logger = logger
        self.run_id = run_id
        self._extra = {"run_id": run_id}
        self._phase_start: float = 0
        self._pipeline_start = time.time()
        self._log_file: Path | None = None
        self._file_handler: logging.FileHandler | None = None

    @property
    def log_file(self) -> Path | None:
        return self._log_file

    def open_log_file(self, log_dir: Path, label: str):
        log_dir.mkdir(parents=True, exist_ok=True)
        stem = Path(label).stem or "document"
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._log_file = log_dir / f"{stem}_{timestamp}_{self.run_id}.log"

        self._file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
        self._file_handler.setFormatter(FileFormatter())
        self._file_handler.setLevel(logging.DEBUG)
        self._file_handler.addFilter(_RunFilter(self.run_id))
        self.logger.addHandler(self._file_handler)

    def close(self):
        """Detach and close this run's file handler."""
        if self._file_handler:
            self.logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def ts(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _elapsed(self) -> str:
        """Elapsed time since phase start."""
        if self._phase_start:
            return f"{time.time() - self._phase_start:.1f}s"
        return ""

    def _total_elapsed(self) -> str:
        """Elapsed time since pipeline start."""
        elapsed = time.time() - self._pipeline_start
        mins = int(elapsed // 60)
        secs = elapsed % 60
        if mins > 0:
            return f"{mins}m {secs:.0f}s"
        return f"{secs:.1f}s"

    def info_line(self, message: str):
        self.logger.info(message, extra=self._extra)

    def end_pipeline(self, success: bool = True, stats: dict | None = None):
        """Mark the end of a document extraction and close its log file."""
        elapsed = self._total_elapsed()
        status = "COMPLETE" if success else "FAILED"

        if stats:
            self.summary(stats)

        self.info_line(f"Extraction {status} [{elapsed}]")
        if self._log_file:
            self.info_line(f"Log: {self._log_file}")
        self.close()

    def start_phase(self, phase: str, model: str = ""):
        """Start a pipeline phase (one per provider attempt)."""
        self._phase_start = time.time()

        header = phase.upper()
        if model:
            short_model = model.split("/")[-1] if "/" in model else model
            header += f" ({short_model})"

        self.info_line("")
        self.info_line(header)

    def phase_result(self, phase: str, result: str, **metrics):
        """Log phase completion with key metrics.

        Args:
            phase: Phase name (e.g., "deepseek")
            result: Brief result description
            **metrics: Key-value metrics to display
        """
        elapsed = self._elapsed()
        parts = [result]
        if metrics:
            parts.append(", ".join(f"{k}={v}" for k, v in metrics.items()))
        if elapsed:
            parts.append(f"[{elapsed}]")
        self.info_line(f"  Done: {' | '.join(parts)}")

    def debug(self, message: str, **data):
        """Log debug message (only in verbose mode)."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.debug(f"[{self.ts()}] {message}", extra=self._extra)

    def info(self, message: str, **data):
        """Log info message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.info_line(f"  {message}")

    def warning(self, message: str, **data):
        """Log warning message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.logger.warning(f"[{self.ts()}] WARN: {message}", extra=self._extra)

    def error(self, message: str, exc: Exception | None = None, **data):
        """Log error message."""
        if data:
            message = f"{message} | {_format_data(data)}"
        if exc:
            message = f"{message} | {type(exc).__name__}: {exc}"
        self.logger.error(f"[{self.ts()}] ERROR: {message}", extra=self._extra)

    def milestone(self, message: str, **data):
        """Log a high-level milestone (always visible, highlighted)."""
        if data:
            message = f"{message} | {_format_data(data)}"
        self.info_line(f"  -> {message}")

    def summary(self, stats: dict):
        """Log a summary block for end-of-run stats."""
        lines = ["SUMMARY"]
        for key, value in stats.items():
            if isinstance(value, dict):
                lines.append(f"  {key}:")
                for k, v in value.items():
                    lines.append(f"    {k}: {v}")
            else:
                lines.append(f"  {key}: {value}")
        self.info_line("\n".join(lines))

class ConsoleFormatter(logging.Formatter):
    """Console formatter - concise."""

    def format(self, record: logging.LogRecord) -> str:
        # The message already includes timestamp from our methods
        return record.getMessage()


class FileFormatter(logging.Formatter):
    """File formatter - includes full details for analysis."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname[:4]
        return f"{ts} [{level}] {record.getMessage()}"


def _format_data(data: dict[str, Any]) -> str:
    """Format structured data for logging."""
    parts = []
    for k, v in data.items():
        if isinstance(v, str) and len(v) > 50:
            v = v[:47] + "..."
        elif isinstance(v, list) and len(v) > 5:
            v = f"[{len(v)} items]"
        parts.append(f"{k}={v}")
    return ", ".join(parts)


# Global logger instance
_logger: PipelineLogger | None = None


def get_logger(verbose: bool = False) -> PipelineLogger:
    """Get or create the global pipeline logger.

    Args:
        verbose: If True, show DEBUG level logs in console. Once any caller
            asks for verbose output it stays on.
    """
    global _logger
    if _logger is None:
        _logger = PipelineLogger(verbose=verbose)
    elif verbose and not _logger.verbose:
        _logger.set_verbose(True)
    return _logger


def reset_logger():
    """Reset the global logger (for testing)."""
    global _logger
    if _logger:
        for handler in _logger.logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                handler.close()
                _logger.logger.removeHandler(handler)
    _logger = None
