"""
Thin wrapper around Python's ``logging`` module with lsodasuite-specific
log levels that mirror the ODEPACK print-level hierarchy.

Usage
-----
>>> from lsodasuite.liblsoda.logger import get_logger
>>> log = get_logger(__name__)
>>> log.warning("lsoda -- at t = %g, mxstep steps taken", t)
>>> log.debug2("step accepted")         # per-step detail
"""

import logging
import sys

# ── Custom levels (below DEBUG=10) ──────────────────────────────────────
DEBUG2 = 9
DEBUG3 = 8

logging.addLevelName(DEBUG2, "DEBUG2")
logging.addLevelName(DEBUG3, "DEBUG3")

ROOT = "lsodasuite"
DEFAULT_FORMAT = "%(levelname)-7s: %(message)s"


class _LsodaLogger(logging.Logger):
    """Logger subclass that adds ``debug2`` and ``debug3`` convenience methods."""

    def debug2(self, msg, *args, **kwargs):
        if self.isEnabledFor(DEBUG2):
            self._log(DEBUG2, msg, args, **kwargs)

    def debug3(self, msg, *args, **kwargs):
        if self.isEnabledFor(DEBUG3):
            self._log(DEBUG3, msg, args, **kwargs)


logging.setLoggerClass(_LsodaLogger)

# ── ODEPACK print levels -> Python levels ───────────────────────────────
PRINT_LEVEL_MAP = {
    0: logging.ERROR,  # illegal input only
    1: logging.WARNING,  # + fatal per-call failures
    2: logging.INFO,  # + method switches (ixpr)
    3: logging.DEBUG,
    4: logging.DEBUG,
    5: DEBUG2,  # + accepted steps
    6: DEBUG3,  # + Jacobian refreshes
}


def get_logger(name: str | None = None) -> _LsodaLogger:
    """Return a logger under the ``lsodasuite`` hierarchy.

    A fully qualified module name (e.g. ``lsodasuite.liblsoda.integrator``)
    inherits from the ``lsodasuite`` root logger, so one ``set_level()``
    call controls everything.
    """
    return logging.getLogger(name or ROOT)


def set_level(level: int | str = logging.INFO) -> None:
    """Set the log level for all lsodasuite loggers at once.

    Accepts Python level ints/names or ODEPACK print levels (0-6).
    """
    if isinstance(level, int) and level in PRINT_LEVEL_MAP:
        level = PRINT_LEVEL_MAP[level]
    logging.getLogger(ROOT).setLevel(level)


def setup(
    level: int | str = logging.INFO, stream=None, fmt: str = DEFAULT_FORMAT
) -> logging.Handler:
    """Route lsodasuite records to *stream* (default stderr) at *level*.

    The handler is attached once; later calls only change the level and
    return the handler already in place, so the solver's messages are
    never duplicated.
    """
    root = logging.getLogger(ROOT)
    set_level(level)
    if root.handlers:
        return root.handlers[0]
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    return handler
