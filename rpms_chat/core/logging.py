import logging
import os
import sys
from typing import Optional

from rpms_chat.core.config import settings

FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FORMAT))
    return handler


def configure_logging(log_dir: Optional[str] = None, level: Optional[str] = None) -> str:
    """
    Logging raíz de la API local: stdout + <LOG_DIR>/<LOG_FILE>.
    Devuelve la ruta del archivo de log.
    """
    log_dir = log_dir or settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, settings.LOG_FILE)
    lvl = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    # Reinicios de uvicorn --reload vuelven a llamar aquí
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        if isinstance(h, logging.FileHandler):
            h.close()

    root.setLevel(lvl)
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), lvl))
    root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), lvl))

    for name in settings.QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging listo en %s (nivel %s)", log_file, logging.getLevelName(lvl))
    return log_file
