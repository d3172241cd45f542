"""
Configuración del logging del skill manager.

Todo pasa por el root logger de stdlib; structlog solo prepara los eventos.
Cada destino es un handler independiente:

- Archivo JSON (si logging.file): todos los eventos desde DEBUG.
- Progreso humano (stderr): solo el nivel HUMAN, formateado por HumanLogHandler.
- Consola técnica (stderr): WARNING por defecto, INFO con -v, DEBUG con -vv.
  Nunca repite los eventos HUMAN.

Con --quiet solo queda el archivo. La salida de cada skill no pasa por aquí:
va a <logs_dir>/<skill>.log desde el propio proceso hijo.
"""

import logging
import sys
from pathlib import Path

import structlog

from ..config.schema import LoggingConfig
from .human import HumanLogHandler
from .levels import HUMAN

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "human": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def _only_human(record: logging.LogRecord) -> bool:
    return record.levelno == HUMAN


def _not_human(record: logging.LogRecord) -> bool:
    return record.levelno != HUMAN


def _json_file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(path), encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def _human_handler() -> logging.Handler:
    handler = HumanLogHandler(stream=sys.stderr)
    handler.addFilter(_only_human)
    return handler


def _console_handler(config: LoggingConfig, rendered_by_formatter: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(_console_level(config))
    handler.addFilter(_not_human)
    if rendered_by_formatter:
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
                foreign_pre_chain=_SHARED_PROCESSORS,
            )
        )
    return handler


def configure_logging(
    config: LoggingConfig,
    json_output: bool = False,
    quiet: bool = False,
) -> None:
    """Instala los handlers y configura structlog.

    Args:
        config: Sección logging de AppConfig.
        json_output: Solo archivo JSON, sin salida por consola.
        quiet: Igual que json_output; pensado para --quiet.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    structlog.reset_defaults()

    to_file = config.file is not None
    if to_file:
        root.addHandler(_json_file_handler(Path(config.file)))

    if not (quiet or json_output):
        root.addHandler(_human_handler())
        root.addHandler(_console_handler(config, rendered_by_formatter=to_file))

    # Con archivo, el render final lo hace cada handler (JSON o consola)
    if to_file:
        renderer = structlog.stdlib.ProcessorFormatter.wrap_for_formatter
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.processors.format_exc_info, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _console_level(config: LoggingConfig) -> int:
    """El más verboso entre -v (0 → WARNING, 1 → INFO, 2+ → DEBUG) y config.level."""
    by_verbose = {0: logging.WARNING, 1: logging.INFO}.get(config.verbose, logging.DEBUG)
    return min(by_verbose, _LEVEL_NAMES.get(config.level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger estructurado para el módulo `name`."""
    return structlog.get_logger(name)
