"""
Logging utilities for h2raw.

This module provides logging configuration and helper functions.
"""

import logging
from typing import Iterable, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = 'h2raw'

_BODY_PREVIEW = 1024


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Set up logging for the application.

    Args:
        level: Logging level (e.g., logging.INFO, logging.DEBUG)
        log_file: Optional file path to write logs to
        verbose: Whether to enable verbose logging

    Returns:
        Configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console = Console(stderr=True)
    console_handler = RichHandler(
        console=console,
        show_path=True,
        show_time=True,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(logging.DEBUG if verbose else level)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(filename)s:%(lineno)d - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the application logger.

    Returns:
        Application logger
    """
    return logging.getLogger(LOGGER_NAME)


def format_body(body: bytes, limit: int = _BODY_PREVIEW) -> str:
    """Render a body for log output, hex encoding binary data."""
    try:
        text = body.decode('utf-8')
    except UnicodeDecodeError:
        preview = body[:limit].hex()
        suffix = "..." if len(body) > limit else ""
        return f"[Binary data: {preview}{suffix}]"
    if len(text) > limit:
        return f"{text[:limit]}... ({len(body)} bytes)"
    return text


def printable_text(text: str) -> str:
    """Show bytes that were not valid UTF-8 as \\x escapes.

    Header names and values from the peer are decoded with ``surrogateescape``,
    and lone surrogates cannot be written to a terminal or a log file.
    """
    return text.encode('utf-8', 'surrogateescape').decode('utf-8', 'backslashreplace')


def format_hex(data: bytes, limit: int = 50) -> str:
    """Short hex preview of raw wire bytes."""
    return data[:limit].hex() + ("..." if len(data) > limit else "")


def log_request(
    logger: logging.Logger,
    fields: Iterable[Tuple[str, str]],
    body: Optional[bytes],
    stream_id: int,
    level: int = logging.DEBUG,
) -> None:
    """Log an outgoing HTTP/2 request.

    Args:
        logger: Logger to use
        fields: Header fields in wire order, pseudo-headers included
        body: Request body, None when the request has none
        stream_id: Stream the request is sent on
        level: Level to log at
    """
    if not logger.isEnabledFor(level):
        return

    logger.log(level, f"==== HTTP/2 REQUEST (stream {stream_id}) ====")
    for name, value in fields:
        logger.log(level, f"  {printable_text(name)}: {printable_text(value)}")
    if body is not None:
        logger.log(level, f"Body ({len(body)} bytes): {format_body(body)}")


def log_response(
    logger: logging.Logger,
    status: str,
    fields: Iterable[Tuple[str, str]],
    body: Optional[bytes],
    response_time: float,
    level: int = logging.DEBUG,
) -> None:
    """Log a received HTTP/2 response.

    Args:
        logger: Logger to use
        status: Response status, empty when none was received
        fields: Header fields in the order received
        body: Response body, None when no DATA frame arrived
        response_time: Response time in seconds
        level: Level to log at
    """
    if not logger.isEnabledFor(level):
        return

    logger.log(level, f"Received response: {status or '<no status>'} ({response_time:.6f}s)")
    for name, value in fields:
        logger.log(level, f"  {printable_text(name)}: {printable_text(value)}")
    if body is None:
        logger.log(level, "  Body: <none>")
    else:
        logger.log(level, f"  Body ({len(body)} bytes): {format_body(body)}")
