"""
Logging with Rich for readable console output on the gateway.
"""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.traceback import install as install_rich_traceback

install_rich_traceback(show_locals=True)

# Global console for rich output
console = Console()

LOGGER_NAME = "pvsync"


class SafeFileHandler(logging.FileHandler):
    """FileHandler that ensures the log directory exists before every write."""

    def emit(self, record):
        """Emit a record, ensuring the log directory exists first."""
        try:
            Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # Let FileHandler report the failure through handleError
            pass
        super().emit(record)


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> logging.Logger:
    """
    Set up the agent logger with a Rich console handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path; the file always receives DEBUG records

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper()))
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_handler = RichHandler(
        console=console, rich_tracebacks=True, tracebacks_show_locals=True, markup=True
    )
    console_handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = SafeFileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger


def log_batch_upload(
    count: int, request_id: int, duration: float, logger: logging.Logger
) -> None:
    """Log a delivered batch."""
    logger.info(
        f"Uploaded [bold]{count}[/bold] readings (request {request_id}, "
        f"[dim]{duration * 1000:.0f}ms[/dim])"
    )


def log_error(error: Exception, logger: logging.Logger, context: str = "") -> None:
    """Log error with context."""
    if context:
        logger.error(f"ERROR: {context}: {escape(str(error))}")
    else:
        logger.error(f"ERROR: {escape(str(error))}")


def log_status(message: str, logger: logging.Logger, tag: str = "INFO:") -> None:
    """Log status message with a short tag."""
    logger.info(f"{tag} {message}" if tag else message)
