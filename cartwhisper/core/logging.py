# cartwhisper/core/logging.py
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import colorlog

RUN_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

# Run whose handler should receive records from the current task
_active_run: ContextVar[Optional["RunLogHandler"]] = ContextVar("cartwhisper_active_run", default=None)


def configure_logging(level=logging.INFO):
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s %(levelname)-8s [%(name)s]%(reset)s %(message)s",
            datefmt="%H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Silence overly chatty libs if needed
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)


class RunLogHandler(logging.Handler):
    """
    Buffers every record emitted under the `cartwhisper` logger while a sync
    runs, then writes them to `<logs_dir>/<session>-<timestamp>.log`.
    Only records emitted inside the run's own context are kept, so concurrent
    syncs do not leak into each other's files.
    """

    def __init__(self, logs_dir: Path, session_name: str = "scan"):
        super().__init__(level=logging.DEBUG)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        self.path = Path(logs_dir) / f"{session_name}-{stamp}.log"
        self.lines: List[str] = []
        self.setFormatter(logging.Formatter(RUN_LOG_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        if _active_run.get() is not self:
            return
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def content(self) -> str:
        return "\n".join(self.lines)

    def save(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.content(), encoding="utf-8")
        return self.path


@contextmanager
def capture_run_log(logs_dir: Path, session_name: str = "scan", logger_name: str = "cartwhisper"):
    """Attach a RunLogHandler to the package logger for the duration of a run."""
    handler = RunLogHandler(logs_dir, session_name)
    logger = logging.getLogger(logger_name)
    prev_level = logger.level
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    ctx_token = _active_run.set(handler)
    try:
        yield handler
    finally:
        _active_run.reset(ctx_token)
        logger.removeHandler(handler)
        logger.setLevel(prev_level)
        try:
            handler.save()
        except OSError as e:
            logging.getLogger(__name__).warning(f"Could not save run log {handler.path}: {e}")


def latest_log_file(logs_dir: Path, session_name: str = "scan") -> Optional[Path]:
    """Most recently modified `<session>-*.log` under logs_dir, or None."""
    logs_dir = Path(logs_dir)
    if not logs_dir.is_dir():
        return None
    files = sorted(
        logs_dir.glob(f"{session_name}-*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    return files[0] if files else None
