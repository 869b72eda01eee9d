"""Logging setup driven by :class:`ServiceLayerSettings`.

One stderr handler renders both stdlib and structlog records:

- ``log_json``: JSON lines, otherwise console output.
- ``verbose``: DEBUG for the ``servicelayer`` logger tree, else WARNING.
- ``service.debug``: the action entry/exit events on ``servicelayer.actions``
  are shown even when ``verbose`` is off.
- ``database.echo``: SQLAlchemy keeps its own statement logging; otherwise
  its loggers are held at WARNING.

Records emitted while an action runs carry ``service`` and ``action`` keys
(bound by the action interceptor through structlog context variables).
"""

from __future__ import annotations

import logging
import sys

import structlog

from servicelayer.config.settings import ServiceLayerSettings

PACKAGE_LOGGER = "servicelayer"
ACTION_LOGGER = "servicelayer.actions"


def _processors() -> list[structlog.types.Processor]:
    """Processors shared by structlog loggers and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        # Action results and entities are not JSON types.
        return structlog.processors.JSONRenderer(default=repr)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _set_levels(settings: ServiceLayerSettings) -> None:
    package_level = logging.DEBUG if settings.verbose else logging.WARNING
    logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)

    if settings.service.debug and not settings.verbose:
        logging.getLogger(ACTION_LOGGER).setLevel(logging.INFO)
    else:
        logging.getLogger(ACTION_LOGGER).setLevel(logging.NOTSET)

    if not settings.database.echo:
        logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def configure_logging(settings: ServiceLayerSettings | None = None) -> None:
    """Install the servicelayer log handler. Safe to call repeatedly.

    Args:
        settings: Source of ``verbose``, ``log_json``, ``service.debug`` and
            ``database.echo``. Discovered with
            :meth:`ServiceLayerSettings.from_config` when omitted.
    """
    if settings is None:
        settings = ServiceLayerSettings.from_config()

    shared = _processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    _set_levels(settings)
