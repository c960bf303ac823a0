from loguru import logger
import os
import sys

_logger_initialized = False

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[component]} | {message}"


def setup_logger(log_level: str = "INFO", log_path: str | None = "logs/sitesearch.log", component: str | None = None):
    """Install the file and console sinks once and return a bound logger."""
    global _logger_initialized

    resolved_component = component or os.getenv("SITESEARCH_COMPONENT") or "sitesearch"

    if not _logger_initialized:
        logger.remove()
        logger.configure(extra={"component": resolved_component})

        if log_path:
            log_dir = os.path.dirname(log_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            logger.add(
                log_path,
                rotation="10 MB",
                retention="7 days",
                level=log_level,
                format=LOG_FORMAT,
                enqueue=True,
            )
        logger.add(
            sys.stderr,
            colorize=True,
            level=log_level,
            format=LOG_FORMAT,
        )
        _logger_initialized = True

    return logger.bind(component=resolved_component)

