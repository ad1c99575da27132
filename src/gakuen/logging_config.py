import logging
import os
import sys

LOG_LEVEL_ENV = "GAKUEN_LOG_LEVEL"


def configure_logging(default_level: int = logging.INFO) -> None:
    """Configure the root logger with a single stdout handler.

    Respects GAKUEN_LOG_LEVEL env var if present.
    """
    level = default_level
    level_name = os.getenv(LOG_LEVEL_ENV)
    if level_name:
        level = getattr(logging, level_name.upper(), default_level)

    handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    # Remove existing handlers to avoid duplicates in repeated test runs
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
