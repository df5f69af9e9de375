"""
Logging for a hydration run.

- Console handler: INFO (DEBUG with --verbose)
- Per-run file handler: DEBUG, <output>/logs/hydration_<run_id>.log
- Secret redaction on both handlers
- UTC timestamps in ISO-8601
"""

from __future__ import annotations

import logging
import re
import sys
import time
from pathlib import Path

ROOT_LOGGER = "hydration_kit"


class MaskSecretsFilter(logging.Filter):
    """Redact bearer tokens, client secrets and passwords from log records."""

    _patterns = [
        re.compile(r"(Bearer\s+)([A-Za-z0-9._~+/=-]+)", re.IGNORECASE),
        re.compile(r"(client_secret\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(access_token\W{0,3}\s*[=:]\s*\W?)([A-Za-z0-9._-]+)", re.IGNORECASE),
    ]

    @staticmethod
    def mask(text: str) -> str:
        for pat in MaskSecretsFilter._patterns:
            text = pat.sub(r"\1***REDACTED***", text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self.mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(
                    self.mask(a) if isinstance(a, str) else a for a in record.args
                )
        return True


def _utc_formatter(fmt: str) -> logging.Formatter:
    f = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%SZ")
    f.converter = time.gmtime
    return f


def configure_logging(logs_dir: Path | None, run_id: str, verbose: bool = False) -> Path | None:
    """
    Attach console and run-file handlers to the package logger.

    Returns the log file path, or None when no directory was given.
    Calling it again replaces the handlers of the previous call.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    mask = MaskSecretsFilter()

    console = logging.StreamHandler(stream=sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(_utc_formatter("%(levelname)-8s %(name)s: %(message)s"))
    console.addFilter(mask)
    logger.addHandler(console)

    # Chatty third-party loggers stay at WARNING
    for noisy in ("httpx", "httpcore", "msal"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if logs_dir is None:
        return None

    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"hydration_{run_id}.log"
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        _utc_formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s")
    )
    file_handler.addFilter(mask)
    logger.addHandler(file_handler)
    return log_path
