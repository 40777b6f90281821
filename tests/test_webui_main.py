import logging
import logging.handlers

import pytest

from recipe_enricher.webui_server.main import configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_configure_logging_writes_rotating_server_log(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "server.log"

    file_handler, console = configure_logging(log_file)
    logging.getLogger("recipe_enricher.test").info("enrichment batch built")
    file_handler.flush()

    assert isinstance(file_handler, logging.handlers.RotatingFileHandler)
    assert "enrichment batch built" in log_file.read_text(encoding="utf-8")
    assert console.level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_configure_logging_replaces_its_own_handlers(tmp_path, restore_root_logger):
    before = len(restore_root_logger.handlers)

    configure_logging(tmp_path / "server.log")
    _, console = configure_logging(tmp_path / "server.log", development=True)

    assert len(restore_root_logger.handlers) == before + 2
    assert console.level == logging.DEBUG
