from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import uvicorn

from .app import create_app
from .settings import load_webui_settings

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
LOG_MAX_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 5
# Chatty at DEBUG: connection pools, job ticks, multipart parser.
QUIET_LOGGERS = ("urllib3", "requests", "apscheduler", "multipart", "python_multipart")

_HANDLER_TAG = "_recipe_enricher_handler"


def configure_logging(log_file: Path, *, development: bool = False) -> list[logging.Handler]:
    """Send everything to a rotating server log and warnings to stderr.

    In development the console shows debug output too.  Calling again swaps
    the handlers installed last time instead of stacking new ones.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if development else logging.WARNING)

    root = logging.getLogger()
    for stale in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(stale)
        stale.close()
    for handler in (file_handler, console):
        handler.setFormatter(fmt)
        setattr(handler, _HANDLER_TAG, True)
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    # Per-request lines would drown the enrichment log.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return [file_handler, console]


def main() -> int:
    settings = load_webui_settings()
    configure_logging(settings.logs_dir / "server.log", development=settings.development)

    uvicorn.run(
        create_app(),
        host=settings.bind_host,
        port=settings.bind_port,
        log_config=None,
        access_log=False,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
