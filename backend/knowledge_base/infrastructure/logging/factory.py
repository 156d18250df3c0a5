"""Logger factory with lazy, once-only configuration.

The first call to get_logger() configures the root logger from settings;
later calls only hand out named loggers. Context passed as keyword arguments is
bound with a LoggerAdapter that merges it into every record's ``extra``.
"""

import inspect
import logging
from threading import Lock
from typing import Any, Dict, MutableMapping, Optional, Tuple, Union

from ..config.settings import get_settings
from .config import setup_logging_configuration

_logging_configured = False
_configuration_lock = Lock()


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges bound context with per-call ``extra``.

    The stdlib adapter replaces ``extra`` wholesale; this one lets a call add
    fields (a document id, an elapsed time) on top of the bound context.
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        super().__init__(logger, extra)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> Tuple[str, MutableMapping[str, Any]]:
        call_extra = kwargs.get("extra") or {}
        bound = self.extra if isinstance(self.extra, dict) else {}
        kwargs["extra"] = {**bound, **call_extra} if isinstance(call_extra, dict) else dict(bound)
        return msg, kwargs


def get_logger(name: Optional[str] = None, **extra_context: Any) -> Union[logging.Logger, ContextLoggerAdapter]:
    """Get a configured logger.

    Args:
        name: Logger name. Detected from the calling module when omitted.
        **extra_context: Fields added to every record from this logger.

    Returns:
        A logger, or an adapter carrying the bound context.
    """
    _ensure_logging_configured()

    if name is None:
        name = _detect_calling_module()

    base_logger = logging.getLogger(name)
    if extra_context:
        return ContextLoggerAdapter(base_logger, extra_context)
    return base_logger


def configure_logging() -> None:
    """Configure logging now instead of on the first get_logger() call."""
    global _logging_configured

    with _configuration_lock:
        if _logging_configured:
            return
        setup_logging_configuration()
        _logging_configured = True

        settings = get_settings()
        logging.getLogger(__name__).info(
            f"Logging configured for {settings.ENVIRONMENT.value} environment",
            extra={"log_level": settings.LOG_LEVEL, "log_format": settings.LOG_FORMAT},
        )


def _ensure_logging_configured() -> None:
    if not _logging_configured:
        configure_logging()


def _detect_calling_module() -> str:
    """Return the ``__name__`` of the module that called get_logger()."""
    frame = inspect.currentframe()
    try:
        for _ in range(2):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return "unknown"
        return str(frame.f_globals.get("__name__", "unknown"))
    finally:
        del frame
