import logging
import re
import sys
from typing import Optional

from baas.core.config import get_settings

_SECRET_PATTERN = re.compile(r"\b(live|test)_([a-f0-9]{4})[a-f0-9]{56}([a-f0-9]{4})\b")


class SecretMaskingFilter(logging.Filter):
    """Redact anything shaped like an API key secret before it reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _SECRET_PATTERN.search(message):
            record.msg = _SECRET_PATTERN.sub(r"\1_\2...\3", message)
            record.args = None
        return True


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure application logging."""
    settings = get_settings()
    level = log_level or (logging.DEBUG if settings.ENV == "dev" else logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SecretMaskingFilter())

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[handler]
    )
    
    # Reduce noise from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)
