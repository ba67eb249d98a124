"""
Tests for src/utils/logging.py
"""

import sys

import pytest
from loguru import logger

from src.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_configure_logging_filters_below_level(capsys):
    configure_logging("warning")

    logger.info("[engine] hidden")
    logger.warning("[engine] shown")

    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "[engine] shown" in err
    assert "WARNING" in err


def test_configure_logging_replaces_previous_sink(capsys):
    configure_logging("INFO")
    configure_logging("INFO")

    logger.info("[grid] once")

    assert capsys.readouterr().err.count("[grid] once") == 1
