"""Simple logger utility."""
import logging
from typing import Optional

from ..app.config import Config

logger = logging.getLogger("youandme")
if not logger.handlers:
    h = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    logger.setLevel(Config.LOG_LEVEL)

def get_logger(name: Optional[str] = None):
    if name:
        return logger.getChild(name)
    return logger
