"""Logging bootstrap utilities with optional structured output."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import structlog

DEFAULT_LOG_FILE = "~/.local/state/picoflow/picoflow.log"


def _best_effort_private_permissions(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        path.chmod(0o600)
    except OSError:
        logging.getLogger(__name__).warning(
            "Unable to enforce 0600 permissions for %s", path
        )


def _app_only_filter(record: logging.LogRecord) -> bool:
    return record.name.startswith("picoflow")


def build_formatter(structured: bool) -> logging.Formatter:
    """Return the JSON formatter when ``structured``, else a plain one."""
    if not structured:
        return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    # The log message moves to "message" so extra={"event": ...} can keep
    # the event name key.
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.processors.EventRenamer("message"),
            structlog.stdlib.ExtraAdder(),
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(ensure_ascii=False, separators=(",", ":")),
        ],
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
        ],
    )


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Configure root logging according to the loaded config using structlog."""
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    structured = bool(logging_config.get("structured", True))
    log_to_file = bool(logging_config.get("log_to_file", False))
    log_file_path = str(logging_config.get("log_file_path", DEFAULT_LOG_FILE))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if structured:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
    formatter = build_formatter(structured)

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    stderr_handler.addFilter(_app_only_filter)
    root.addHandler(stderr_handler)

    if log_to_file:
        target = Path(log_file_path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        _best_effort_private_permissions(target)

    # asyncio reports handler failures raised after suspension.
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))
