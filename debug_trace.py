"""
debug_trace.py

Opt-in trace output for following gestures, store commits and painting.

VECSKETCH_TRACE turns it on: "1" (or "all") traces every category, a
comma-separated list such as "GESTURE,STORE" traces only those.  MOVE
lines, one per pointer move, additionally need VECSKETCH_TRACE_MOVE.
VECSKETCH_TRACE_FILE appends every line to that file as well.
ERROR and CRASH lines are always printed once tracing is on.
"""

import os
import sys
import traceback
from datetime import datetime
from typing import FrozenSet, Tuple

_ALWAYS = ("ERROR", "CRASH")


def _parse_switch(value: str) -> Tuple[bool, FrozenSet[str]]:
    value = value.strip()
    if value in ("", "0"):
        return False, frozenset()
    if value == "1" or value.lower() == "all":
        return True, frozenset()
    return True, frozenset(c.strip().upper() for c in value.split(",") if c.strip())


DEBUG_TRACE, CATEGORIES = _parse_switch(os.environ.get("VECSKETCH_TRACE", ""))

# Pointer-move traces are very verbose
TRACE_MOVE = os.environ.get("VECSKETCH_TRACE_MOVE", "") not in ("", "0")

# Log file (None for stderr only)
LOG_FILE = os.environ.get("VECSKETCH_TRACE_FILE") or None

_log_file = None


def _get_log_file():
    global _log_file
    if LOG_FILE and _log_file is None:
        try:
            _log_file = open(LOG_FILE, "a", encoding="utf-8")
        except OSError as e:
            print(f"debug_trace: cannot open {LOG_FILE}: {e}", file=sys.stderr)
    return _log_file


def enabled(category: str) -> bool:
    """True if a line in ``category`` would be printed right now."""
    if not DEBUG_TRACE:
        return False
    if category == "MOVE" and not TRACE_MOVE:
        return False
    return not CATEGORIES or category in CATEGORIES or category in _ALWAYS


def trace(msg: str, category: str = "INFO"):
    """Print a trace message with timestamp."""
    if not enabled(category):
        return

    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"[{timestamp}] [{category}] {msg}"

    print(line, file=sys.stderr, flush=True)

    log_file = _get_log_file()
    if log_file:
        log_file.write(line + "\n")
        log_file.flush()


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def close_log():
    """Close the trace file, if one was opened."""
    global _log_file
    if _log_file:
        _log_file.close()
        _log_file = None
