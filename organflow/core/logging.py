import logging
import logging.handlers
import os
import sys
from organflow.core.config import Settings, settings

# Third-party loggers kept at WARNING so request logs stay readable
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "urllib3", "httpx")


class RequestIDFilter(logging.Filter):
    """Default request_id for records logged outside an HTTP request."""

    def filter(self, record):
        record.request_id = getattr(record, "request_id", "N/A")
        return True


def setup_logging(app_settings: Settings = settings) -> logging.Logger:
    """Route the root logger to stdout, plus a rotating file outside DEBUG."""
    level = getattr(logging, app_settings.LOG_LEVEL.upper())
    formatter = logging.Formatter(app_settings.LOG_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if not app_settings.DEBUG:
        log_dir = os.path.dirname(app_settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            app_settings.LOG_FILE,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    request_id_filter = RequestIDFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(request_id_filter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


logger = setup_logging()
