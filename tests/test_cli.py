import json
import logging

import pytest

from jilattice.__main__ import main
from jilattice.logging_config import setup_logging
from jilattice.model.serialization import load_payload


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("jilattice")
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


def test_cli_writes_hdf5(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"root": {"root_limits": [3], "expansion_a": 2, "expansion_b": 1,
                                             "expansion_c": 0}}))
    out = tmp_path / "lattice.h5"
    assert main([str(settings), "--out", str(out), "--log-level", "WARNING"]) == 0
    payload = load_payload(str(out))
    assert len(payload["nodes"]) == 35


def test_cli_rejects_bad_input(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert main([str(broken), "--log-level", "ERROR"]) == 1

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"visuals": 5}))
    assert main([str(invalid), "--log-level", "ERROR"]) == 1


def test_setup_logging_replaces_handlers(tmp_path):
    log_file = tmp_path / "run.log"
    setup_logging(logging.DEBUG, str(log_file))
    setup_logging(logging.INFO)
    logger = logging.getLogger("jilattice")
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_setup_logging_accepts_level_names():
    setup_logging("debug")
    assert logging.getLogger("jilattice").level == logging.DEBUG
    with pytest.raises(ValueError):
        setup_logging("chatty")


def test_cli_log_level_is_case_insensitive(tmp_path):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"equal_step": {"enabled": True, "range": 2}}))
    assert main([str(settings), "--log-level", "warning"]) == 0
    assert logging.getLogger("jilattice").level == logging.WARNING
