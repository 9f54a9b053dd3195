import logging
import os

import pytest

from utils.logging_utils import configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


def test_configure_logging_writes_timestamped_file(tmp_path, restore_root_logger):
    log_file = configure_logging(str(tmp_path / "logs"), "DEBUG", name="test")

    assert os.path.dirname(log_file) == str(tmp_path / "logs")
    assert os.path.basename(log_file).startswith("test_")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("mysql.connector").level == logging.WARNING

    logging.getLogger("LoggingTest").info("hello log file")
    for handler in logging.getLogger().handlers:
        handler.flush()
    with open(log_file, encoding="utf-8") as f:
        assert ":INFO:LoggingTest: hello log file" in f.read()
