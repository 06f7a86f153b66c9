import logging
import sys
import structlog
from typing import List, Optional

from docsearch.core.config import settings

# Third-party loggers that flood DEBUG/INFO during model loading and I/O.
NOISY_LOGGERS = ("httpx", "httpcore", "fitz", "pymilvus", "sentence_transformers", "botocore", "urllib3")


def _shared_processors(level: str) -> List:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if level == "DEBUG":
        processors.append(structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ))
    return processors


def _has_stdout_handler(logger: logging.Logger) -> bool:
    return any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
        for h in logger.handlers
    )


def setup_logging(level: Optional[str] = None):
    """JSON logs to stdout for the worker and the schema command; stdlib records go through the same chain."""
    level = (level or settings.LOG_LEVEL).upper()
    shared_processors = _shared_processors(level)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    if not _has_stdout_handler(root_logger):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        ))
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.bind_contextvars(service=settings.SERVICE_NAME)
    structlog.get_logger("docsearch.logging").info("Logging configured", log_level=level)
