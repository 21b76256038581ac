# image_ops/logging_setup.py
from __future__ import annotations
import logging
from typing import Callable, Mapping, Any

from image_ops.config import SERVICE_NAME

try:
    from systemd.journal import JournalHandler  # pip: systemd-python
    _HAS_JOURNAL = True
except ImportError:
    _HAS_JOURNAL = False

MakeLogger = Callable[..., logging.Logger]


class ContextAdapter(logging.LoggerAdapter):
    """Carries call context (operation, tool, client...) on every record as `record.ctx`.

    Nested adapters merge their context, inner keys winning.
    """

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["ctx"] = {**(self.extra or {}), **extra.get("ctx", {})}
        kwargs["extra"] = extra
        return msg, kwargs


class ContextFormatter(logging.Formatter):
    """Appends " [key=value ...]" after the logger name when a record has context."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = getattr(record, "ctx", None)
        record.ctx_text = (" [" + " ".join(f"{k}={v}" for k, v in ctx.items()) + "]") if ctx else ""
        return super().format(record)


def configure_logging(
    level: str = "INFO",
    service_name: str = SERVICE_NAME,
    to_stderr: bool = True,
    to_journal: bool = True,
) -> MakeLogger:
    """
    Configure the service logger once and return a factory for child loggers:
      make_logger("processor", {"operation": "resize"})

    Library modules log under "image-ops.<component>" and inherit these
    handlers; a logger built here with context can be handed to
    create_processor(logger=...) so its records carry that context.
    """
    root = logging.getLogger(service_name)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    if not root.handlers:
        if to_journal and _HAS_JOURNAL:
            jh = JournalHandler(SYSLOG_IDENTIFIER=service_name)
            jh.setLevel(root.level)
            # journald already timestamps
            jh.setFormatter(ContextFormatter("%(levelname)s%(ctx_text)s: %(message)s"))
            root.addHandler(jh)

        if to_stderr:
            sh = logging.StreamHandler()
            sh.setLevel(root.level)
            sh.setFormatter(ContextFormatter(
                "%(asctime)s %(levelname)s %(name)s%(ctx_text)s: %(message)s"
            ))
            root.addHandler(sh)

    def make_logger(child: str = "", ctx: Mapping[str, Any] | None = None) -> logging.Logger:
        base = root if not child else root.getChild(child)
        if ctx:
            return ContextAdapter(base, dict(ctx))  # type: ignore[return-value]
        return base

    return make_logger
