"""Logging configuration for the Helios onboarding bot.

Sets up a dual-handler logging pipeline:

1. **Console** -- :class:`SafeStreamHandler` that gracefully handles
   Unicode on Windows by falling back to ``cp1252`` replacement
   encoding.
2. **File** -- :class:`CompressedRotatingFileHandler` writing to
   ``logs/helios_bot.log`` with automatic gzip rotation (10 MiB per
   file, 5 backups).

Both handlers carry a :class:`SecretRedactionFilter` so that a private
key can never reach a log sink, even through an accidental ``%s``.

Usage::

    from core.logging_setup import setup_logging
    setup_logging("DEBUG")
"""

import gzip
import logging
import os
import re
import shutil
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s - %(message)s'

# Third-party loggers that drown out per-account progress at DEBUG
NOISY_LOGGERS = ("aiohttp", "web3", "urllib3", "asyncio")

# 32-byte hex secrets, optionally 0x-prefixed; addresses are 20 bytes
_SECRET_PATTERN = re.compile(r"\b(?:0x)?[0-9a-fA-F]{64}\b")


class SecretRedactionFilter(logging.Filter):
    """Mask 64-hex-digit tokens (private keys) in log records.

    The record message is rendered once, redacted, and frozen so that
    downstream formatters see the masked text only.
    """

    MASK = "<redacted>"

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        redacted = _SECRET_PATTERN.sub(self.MASK, message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class CompressedRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that gzip-compresses rotated log files."""

    def rotation_filename(self, default_name: str) -> str:
        return f"{default_name}.gz"

    def rotate(self, source: str, dest: str) -> None:
        """Compress *source* into *dest* and remove *source*."""
        with open(source, 'rb') as f_in:
            with gzip.open(dest, 'wb') as f_out:
                shutil.copyfileobj(f_in, f_out)
        os.remove(source)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that never crashes on unencodable characters.

    Windows consoles default to a narrow code page that cannot show the
    emoji used in progress lines; on :exc:`UnicodeEncodeError` the
    message is re-encoded as ``cp1252`` with replacement characters.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            try:
                self.stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(
                    'cp1252', errors='replace',
                ).decode('cp1252')
                self.stream.write(safe_msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger with console and file handlers.

    Args:
        log_level: Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).
            Unknown names fall back to ``INFO``.
        log_file: Path of the rotating log file.  Defaults to
            ``logs/helios_bot.log`` under the working directory.
    """
    if sys.platform == "win32" and hasattr(sys.stdout, 'reconfigure'):
        # Must happen before the stream handler captures sys.stdout
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')

    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = log_file or os.path.join("logs", "helios_bot.log")
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = CompressedRotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8',
    )
    stream_handler = SafeStreamHandler(sys.stdout)

    redaction = SecretRedactionFilter()
    for handler in (file_handler, stream_handler):
        handler.addFilter(redaction)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[file_handler, stream_handler],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
