"""
Structured logging setup for labctl.

Every component logs through a named ContextLogger so bootstrap and
preflight output share one format.
"""

import logging
import sys
from datetime import datetime


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes messages with time, component and level."""

    COLORS = {
        logging.DEBUG: "\033[90m",    # Gray
        logging.INFO: "\033[36m",     # Cyan
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",    # Red
        logging.CRITICAL: "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        stream = stream or sys.stdout
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S")
        level = record.levelname.ljust(5)
        message = record.getMessage()

        context = ""
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            context = " " + " ".join(f"{k}={v}" for k, v in extra_data.items())

        if self.use_colors:
            color = self.COLORS.get(record.levelno, "")
            return f"{color}[{timestamp}][{record.name}][{level}]{self.RESET} {message}{context}"
        return f"[{timestamp}][{record.name}][{level}] {message}{context}"


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that attaches bound context (step, task) to records."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra", {}))
        if extra:
            kwargs["extra"] = {"extra_data": extra}
        return msg, kwargs

    def bind(self, **context) -> "ContextLogger":
        """Return a logger carrying this logger's context plus ``context``."""
        merged = dict(self.extra or {})
        merged.update(context)
        return ContextLogger(self.logger, merged)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    if quiet:
        level = logging.WARNING

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(use_colors=True))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Reduce noise from external libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str, **context) -> ContextLogger:
    """Get a context-aware logger under the ``labctl`` namespace."""
    logger = logging.getLogger(f"labctl.{name}")
    return ContextLogger(logger, context)
