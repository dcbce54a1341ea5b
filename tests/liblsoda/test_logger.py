"""
Tests for lsodasuite.liblsoda.logger: levels, hierarchy and handler setup.
"""

import io
import logging

import pytest

from lsodasuite.liblsoda import logger as lg


@pytest.fixture
def root_logger():
    """Restore the lsodasuite root logger after each test."""
    root = logging.getLogger(lg.ROOT)
    handlers, level = list(root.handlers), root.level
    root.handlers.clear()
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLevels:
    def test_custom_levels_below_debug(self):
        assert lg.DEBUG3 < lg.DEBUG2 < logging.DEBUG
        assert logging.getLevelName(lg.DEBUG2) == "DEBUG2"
        assert logging.getLevelName(lg.DEBUG3) == "DEBUG3"

    @pytest.mark.parametrize(
        "print_level, level",
        [(0, logging.ERROR), (1, logging.WARNING), (2, logging.INFO), (5, lg.DEBUG2), (6, lg.DEBUG3)],
    )
    def test_print_levels(self, root_logger, print_level, level):
        lg.set_level(print_level)
        assert root_logger.level == level

    def test_python_level_passthrough(self, root_logger):
        lg.set_level(logging.CRITICAL)
        assert root_logger.level == logging.CRITICAL
        lg.set_level("DEBUG")
        assert root_logger.level == logging.DEBUG


class TestGetLogger:
    def test_module_logger_is_child_of_root(self, root_logger):
        log = lg.get_logger("lsodasuite.liblsoda.integrator")
        assert log.parent.name.startswith(lg.ROOT)
        assert hasattr(log, "debug2") and hasattr(log, "debug3")

    def test_default_name(self):
        assert lg.get_logger().name == lg.ROOT


class TestSetup:
    def test_writes_formatted_records(self, root_logger):
        stream = io.StringIO()
        lg.setup(lg.DEBUG2, stream=stream)
        log = lg.get_logger("lsodasuite.test_logger_setup")
        log.debug2("step %d accepted", 3)
        log.debug3("hidden")
        out = stream.getvalue()
        assert "DEBUG2 : step 3 accepted" in out
        assert "hidden" not in out

    def test_second_call_keeps_handler_and_updates_level(self, root_logger):
        first = lg.setup(stream=io.StringIO())
        second = lg.setup(logging.WARNING, stream=io.StringIO())
        assert second is first
        assert len(root_logger.handlers) == 1
        assert root_logger.level == logging.WARNING

    def test_custom_format(self, root_logger):
        stream = io.StringIO()
        lg.setup(logging.INFO, stream=stream, fmt="[%(name)s] %(message)s")
        lg.get_logger("lsodasuite.test_logger_fmt").info("switch at t = %g", 0.5)
        assert stream.getvalue() == "[lsodasuite.test_logger_fmt] switch at t = 0.5\n"
