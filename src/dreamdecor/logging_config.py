import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_LEVEL_ENV = "DREAMDECOR_LOG_LEVEL"

# Libraries that log every HTTP request at DEBUG
_NOISY_LOGGERS = ("urllib3", "requests")


def configure_logging(default_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Install stdout (and optional file) handlers on the root logger.

    DREAMDECOR_LOG_LEVEL overrides ``default_level`` when set to a level name.
    Calling this again replaces the handlers from the previous call.
    """
    level = default_level
    level_name = os.getenv(LOG_LEVEL_ENV)
    if level_name:
        level = getattr(logging, level_name.upper(), default_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    handlers = [logging.StreamHandler(stream=sys.stdout)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
