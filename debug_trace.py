"""
debug_trace.py

Debug instrumentation for ChartLens.
Enable with ``debug_trace = true`` under ``[general]`` in settings.toml,
or by setting CHARTLENS_TRACE=1 in the environment.
"""

import os
import sys
import traceback
from datetime import datetime
from functools import wraps
from pathlib import Path

import platformdirs

APP_NAME = "chartlens"

# Toggled by enable_trace(); the environment variable wins at import time
DEBUG_TRACE = os.environ.get("CHARTLENS_TRACE", "") not in ("", "0")

# Set to True to trace scanner runs on every keystroke (very verbose)
TRACE_SCAN = False

# Log file name (None for stderr only)
LOG_FILE = "chartlens_debug.log"

_log_file = None


def enable_trace(enabled: bool) -> None:
    """Turn tracing on or off at runtime."""
    global DEBUG_TRACE
    DEBUG_TRACE = bool(enabled) or os.environ.get("CHARTLENS_TRACE", "") not in ("", "0")


def _get_log_file():
    global _log_file
    if LOG_FILE and _log_file is None:
        try:
            log_dir = Path(platformdirs.user_log_dir(APP_NAME))
            log_dir.mkdir(parents=True, exist_ok=True)
            _log_file = open(log_dir / LOG_FILE, "w", encoding="utf-8")
        except OSError:
            pass
    return _log_file


def trace(msg: str, category: str = "INFO"):
    """Print a trace message with timestamp."""
    if not DEBUG_TRACE:
        return
    if category == "SCAN" and not TRACE_SCAN:
        return

    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"[{timestamp}] [{category}] {msg}"

    print(line, file=sys.stderr, flush=True)

    log_file = _get_log_file()
    if log_file:
        try:
            log_file.write(line + "\n")
            log_file.flush()
        except OSError:
            pass


def trace_exception(msg: str = "Exception"):
    """Print exception info."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not DEBUG_TRACE:
                return func(*args, **kwargs)
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator


def close_log():
    """Close log file."""
    global _log_file
    if _log_file:
        try:
            _log_file.close()
        except OSError:
            pass
        _log_file = None
