"""
Logging setup for the solver
Keeps a bounded in-memory history of recent records for the /logs endpoint
"""
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List

LOG_FORMAT = "[HW-Solver][%(levelname)s] (%(asctime)s) %(name)s: %(message)s"


class HistoryHandler(logging.Handler):
    """Ring buffer of the last `limit` log records"""

    def __init__(self, limit: int = 100):
        super().__init__()
        self._records = deque(maxlen=limit)
        self._history_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        with self._history_lock:
            self._records.append(entry)

    @property
    def limit(self) -> int:
        return self._records.maxlen

    def history(self) -> List[Dict[str, Any]]:
        with self._history_lock:
            return list(self._records)

    def clear(self):
        with self._history_lock:
            self._records.clear()


history_handler = HistoryHandler()


def setup_logging(level: str = "INFO", history_limit: int = 100) -> HistoryHandler:
    """
    Configure root logging and attach the history handler

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        history_limit: How many records the history keeps

    Returns:
        The shared history handler
    """
    global history_handler
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    root = logging.getLogger()
    if history_handler.limit != history_limit:
        root.removeHandler(history_handler)
        history_handler = HistoryHandler(history_limit)
    if history_handler not in root.handlers:
        root.addHandler(history_handler)

    set_level(level)
    return history_handler


def set_level(level: str):
    """Change the root log level at runtime"""
    # WARN is accepted as an alias, NONE silences everything
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    if name == "NONE":
        numeric = logging.CRITICAL + 10
    else:
        numeric = logging.getLevelName(name)
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
    logging.getLogger().setLevel(numeric)
