"""CLI logging: structlog events rendered through stdlib logging on stderr."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

LEVEL_ENV = "MONOVERSION_LOG_LEVEL"
FORMAT_ENV = "MONOVERSION_LOG_FORMAT"


def setup_logging(verbose: bool = False) -> None:
    """Route structlog and stdlib records to stderr; stdout stays free for reports.

    ``MONOVERSION_LOG_LEVEL`` overrides the level (WARNING, or DEBUG with
    *verbose*). ``MONOVERSION_LOG_FORMAT=json`` switches to JSON lines.
    """
    level = os.environ.get(LEVEL_ENV, "DEBUG" if verbose else "WARNING").upper()
    as_json = os.environ.get(FORMAT_ENV, "console").lower() == "json"

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if as_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "cli": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "cli",
                },
            },
            "loggers": {
                "monoversion": {"handlers": ["stderr"], "level": level, "propagate": False},
            },
        }
    )
