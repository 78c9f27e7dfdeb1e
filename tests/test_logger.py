from __future__ import annotations

import logging

import pytest

import logger as gym_logger


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_records_are_printed_once(restore_root, capsys):
    gym_logger.setup_logger("gym", "INFO")
    log = gym_logger.setup_logger("gym", "INFO")

    log.info("app line")
    logging.getLogger("services").info("service line")

    out = capsys.readouterr().out
    assert out.count("app line") == 1
    assert out.count("service line") == 1
    assert "[INFO] [services]" in out


def test_level_filters_debug(restore_root, capsys):
    log = gym_logger.setup_logger("gym", "info")
    log.debug("hidden")
    assert "hidden" not in capsys.readouterr().out
