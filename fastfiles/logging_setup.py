# fastfiles/logging_setup.py
import logging
import sys
import structlog

VERBOSITY_TO_LEVEL = {0: "warning", 1: "info", 2: "debug"}

def level_from_verbosity(verbosity: int) -> str:
    # maps a repeated --verbose count onto a level name; anything past -vv is debug.
    return VERBOSITY_TO_LEVEL.get(min(max(verbosity, 0), 2), "warning")

def _formatter_processors(force_json_logs: bool):
    strip_meta = structlog.stdlib.ProcessorFormatter.remove_processors_meta
    if force_json_logs:
        return [strip_meta, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [strip_meta, structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

def configure_logging(log_level_str: str = "warning", force_json_logs: bool = False):
    # routes structlog through stdlib logging onto stderr; stdout carries results only.
    log_level = getattr(logging, log_level_str.upper(), logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=_formatter_processors(force_json_logs),
            foreign_pre_chain=[structlog.stdlib.add_log_level],
        )
    )

    app_logger = logging.getLogger("fastfiles")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(log_level)
    app_logger.propagate = False

    structlog.get_logger(__name__).debug("logging_configured", level=log_level_str, json=force_json_logs)
