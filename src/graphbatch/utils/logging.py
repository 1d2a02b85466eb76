import logging

import structlog


def setup_logging(level: int = logging.WARNING) -> None:
    """
    Route structlog through stdlib logging with console rendering.

    Parameters
    ----------
    level : int, optional
        Level of the ``graphbatch`` logger.
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger(name="graphbatch").setLevel(level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
