"""Logging for the canvas-cli commands.

``--debug`` lowers the level to DEBUG, which also shows every HTTP
request httpx makes and the retry decisions of the client. ``--log-file``
copies the same records to a file, which is the place to look after a
long download batch since the terminal is busy with progress bars.
"""

from __future__ import annotations

import logging
from pathlib import Path

# downloads run in worker threads, so the thread name tells batches apart
DEFAULT_FORMAT = "%(asctime)s %(threadName)s %(name)s %(levelname)s %(message)s"

LOGGER_NAME = "canvas_cli"


def setup_logging(
    level: int = logging.WARNING,
    log_file: str | None = None,
    fmt: str = DEFAULT_FORMAT,
) -> None:
    """Route ``canvas_cli`` records to stderr and, optionally, *log_file*.

    Calling it again replaces the previous handlers, so each ``run()``
    starts from a clean configuration.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path), encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    )
