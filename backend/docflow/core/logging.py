"""
Process-wide logging setup.

Every service calls configure_logging() once at startup. Records carry the
service name so interleaved gateway / worker output stays attributable:

    2024-01-01 12:00:00,000 [api-gateway] INFO docflow.bus.client Message sent | topic=...

When LOG_DIR is set, two files are written per service in addition to the
console: <service>-error.log (ERROR and above) and <service>-combined.log.
"""

from __future__ import annotations

import logging
import os

from docflow.core.config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s [%(service)s] %(levelname)s %(name)s %(message)s"

_HANDLER_MARKER = "_docflow_handler"


class ServiceNameFilter(logging.Filter):
    """Stamp every record with the owning service name."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


def _make_handler(handler: logging.Handler, service_name: str, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(ServiceNameFilter(service_name))
    setattr(handler, _HANDLER_MARKER, True)
    return handler


def configure_logging(service_name: str, settings: Settings | None = None) -> None:
    """
    Install console (and optional file) handlers on the root logger.

    Calling it again replaces the handlers it installed previously, so tests
    and reloads never duplicate output.
    """
    settings = settings or default_settings
    level = logging.DEBUG if settings.debug else logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)
            existing.close()

    root.setLevel(level)
    root.addHandler(_make_handler(logging.StreamHandler(), service_name, level))

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
        root.addHandler(_make_handler(
            logging.FileHandler(os.path.join(settings.log_dir, f"{service_name}-error.log")),
            service_name, logging.ERROR,
        ))
        root.addHandler(_make_handler(
            logging.FileHandler(os.path.join(settings.log_dir, f"{service_name}-combined.log")),
            service_name, level,
        ))

    # kombu/amqp are chatty at DEBUG
    logging.getLogger("amqp").setLevel(max(level, logging.INFO))
    logging.getLogger("kombu").setLevel(max(level, logging.INFO))

    logging.getLogger(__name__).debug("Logging configured | service=%s level=%s", service_name, level)
