"""Logging configuration for vault-hub."""

import logging
import os
import sys
from typing import TextIO

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# LogRecord attributes rendered as a trailing "key=value" block when present
CONTEXT_FIELDS = ("vault", "wallet", "tx_hash", "pass_number")


class ColoredFormatter(logging.Formatter):
    """ANSI-coloured level names plus any vault/wallet context on the record."""

    COLORS = {
        "TRACE": "\033[90m",
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def _context(self, record: logging.LogRecord) -> str:
        pairs = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if not pairs:
            return ""
        block = " ".join(pairs)
        return f" {self.DIM}[{block}]{self.RESET}" if self.use_color else f" [{block}]"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_color and levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"

        try:
            return super().format(record) + self._context(record)
        finally:
            record.levelname = levelname


def setup_logging(log_level: str | None = None, stream: TextIO | None = None) -> None:
    """Configure root logging for the CLI.

    ``log_level`` falls back to the LOG_LEVEL environment variable, then INFO.
    Colours are used only when the stream is a terminal. At DEBUG the web3
    and urllib3 loggers stay at WARNING; TRACE opens them up.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = TRACE if log_level == "TRACE" else getattr(logging, log_level, logging.INFO)
    stream = stream or sys.stdout

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=stream.isatty(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    noisy_level = {"DEBUG": logging.WARNING, "TRACE": TRACE}.get(log_level)
    if noisy_level is not None:
        for name in ("web3", "urllib3"):
            logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)
