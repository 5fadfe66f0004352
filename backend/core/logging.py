from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _rotating_file_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    logs_dir = Path(BACKEND_DIR) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        logs_dir / "routines.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(*, environment: str) -> None:
    """Configure application logging.

    Development logs to the console at DEBUG. Production adds a rotating
    ``logs/routines.log`` file and logs at INFO.

    Does nothing if the root logger already has handlers (pytest, uvicorn --log-config).
    """

    root = logging.getLogger()
    if root.handlers:
        return

    is_production = (environment or "development").lower().strip() == "production"
    level = logging.INFO if is_production else logging.DEBUG
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if is_production:
        handlers.append(_rotating_file_handler(level, formatter))

    logging.basicConfig(level=level, handlers=handlers)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    # SQL echo is far too chatty at DEBUG.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
