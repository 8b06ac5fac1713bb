# comic_studio/logger.py
import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple

from comic_studio.config import config

_DEFAULT_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# follow our level so request logs line up with generation logs
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "gunicorn.error", "gunicorn.access", "asyncio")
# SDK request logging echoes every prompt and base64 payload at DEBUG
_SDK_LOGGERS = ("openai", "httpx", "urllib3")

_configured = False


def _level_value(level: Optional[str]) -> int:
    return getattr(logging, (level or config.log_level).upper(), logging.INFO)

def _attach_stdout(root: logging.Logger, level: int, fmt: str) -> None:
    if not root.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(fmt))
        root.addHandler(h)
    for h in root.handlers:
        h.setLevel(level)
        if not h.formatter:
            h.setFormatter(logging.Formatter(fmt))

def configure_logging(level: Optional[str] = None, fmt: str = _DEFAULT_FMT) -> None:
    """Configure logging once from LOG_LEVEL, taking over any earlier basicConfig."""
    global _configured
    if _configured:
        return

    level_value = _level_value(level)
    root = logging.getLogger()
    root.setLevel(level_value)
    _attach_stdout(root, level_value, fmt)

    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(level_value)
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.INFO))

    _configured = True

def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or __name__)


class RunLogger(logging.LoggerAdapter):
    """Prefixes every message with the run id so interleaved runs stay readable."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['run_id']}] {msg}", kwargs

def run_logger(logger: logging.Logger, run_id: str) -> RunLogger:
    return RunLogger(logger, {"run_id": run_id})
