"""
Status codes and exceptions for the LSODA driver.

``advance`` reports every recoverable outcome through an ``IState`` code
rather than raising, so a caller can adjust options and continue the same
integration.  Exceptions are reserved for misuse that cannot be answered
with a status code.
"""

from enum import IntEnum


# ---------------------------------------------------------------------------
# Integer codes matching the classic istate / itask parameters
# ---------------------------------------------------------------------------

class IState(IntEnum):
    INITIAL = 1
    CONTINUE = 2
    CONTINUE_CHANGED = 3
    TOO_MANY_STEPS = -1
    EXCESS_PRECISION = -2
    ILLEGAL_INPUT = -3
    ERROR_TEST_FAILURE = -4
    CONVERGENCE_FAILURE = -5
    ZERO_WEIGHT = -6


# the only status advance() returns when it reaches its stop condition
SUCCESS = IState.CONTINUE


class Task(IntEnum):
    NORMAL = 1
    ONE_STEP = 2
    OVERSHOOT = 3
    CRITICAL = 4
    CRITICAL_ONE_STEP = 5


class IllegalInput(IntEnum):
    """Reason recorded when ``advance`` returns ``IState.ILLEGAL_INPUT``."""

    INVALID_STATE = 1
    INVALID_TASK = 2
    UNINITIALIZED_CONTINUATION = 3
    NONPOSITIVE_DIMENSION = 4
    DIMENSION_INCREASE = 5
    INVALID_TOLERANCE_MODE = 6
    NEGATIVE_TOLERANCE = 7
    INVALID_OPTION = 8
    INVALID_CRITICAL_TIME = 9
    NONPOSITIVE_STEP_DIRECTION = 10
    TOUT_TOO_CLOSE = 11
    TOUT_BEHIND_TCUR = 12
    INTERPOLATION_FAILURE = 13
    ZERO_WEIGHT_AT_START = 14
    EXCESS_PRECISION_AT_START = 15


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class LsodaError(RuntimeError):
    """Base class for errors raised by lsodasuite."""


class RepeatedIllegalInputError(LsodaError):
    """Illegal input was passed again after five consecutive rejections."""


class IntegrationError(LsodaError):
    """The integrator returned a failure status while driving an output grid."""

    def __init__(self, istate, t, table=None):
        self.istate = IState(istate)
        self.t = t
        self.table = table
        super().__init__(f"lsoda failed with istate = {self.istate.name} at t = {t:g}")


class DenseOutputError(ValueError):
    """Interpolation requested outside the last step or above the current order."""

    def __init__(self, iflag, msg):
        self.iflag = iflag
        super().__init__(msg)
