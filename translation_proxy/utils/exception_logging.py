"""
Exception logging helpers for the relay's error boundary.
"""

import logging
from typing import Optional


def _safe_str(obj) -> str:
    """
    Convert an object to string without ever raising.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _root_cause(exception: BaseException) -> BaseException:
    """Follow the ``cause`` attribute of wrapping proxy failures down to the original error."""
    seen = set()
    while getattr(exception, "cause", None) is not None and id(exception) not in seen:
        seen.add(id(exception))
        exception = exception.cause
    return exception


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
    request_url: Optional[str] = None,
) -> None:
    """
    Log a failure with its stack trace and the request it happened on.
    Never raises, even for broken exception objects.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy]")
        exception: The exception to log; wrapped failures are unwrapped
        level: The logging level to use (default: ERROR)
        request_url: The inbound URL being proxied, when known
    """
    try:
        cause = _root_cause(exception) if exception is not None else None
        message = f"{_safe_str(prefix)} {type(cause).__name__}: {_safe_str(cause)}"
        if request_url:
            message = f"{message} (url: {request_url})"
        try:
            logger.log(level, message, exc_info=cause if cause is not None else False)
        except Exception:
            logger.log(level, message)
    except Exception:
        try:
            logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: BaseException) -> str:
    """
    One-line ``Type: message`` description of the underlying cause.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"
    try:
        cause = _root_cause(exception)
        return f"{type(cause).__name__}: {_safe_str(cause)}"
    except Exception:
        return "<exception (formatting failed)>"
