from __future__ import annotations

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str = "INFO") -> None:
    """Configures the root logger once per process.

    Libraries that log every request (httpx, uvicorn access log) are kept at
    WARNING unless the app itself runs at DEBUG.
    """

    log_level = getattr(logging, (level or "INFO").upper(), None)
    if not isinstance(log_level, int):
        print(f"WARNING: invalid LOG_LEVEL {level!r}, defaulting to INFO", file=sys.stderr)
        log_level = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    noisy_level = logging.INFO if log_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
