"""Logging utilities for Displacement Atlas.

Provides scope-aware logging and YAML-based configuration loading.
All loggers are namespaced under 'displacementatlas'.

The package never configures logging on import. An application opts in with
``configure_logging()`` or ``DisplacementAtlas(configure_logs=True)``.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Set

import yaml

_PACKAGE_LOGGER = "displacementatlas"
_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "logging.yaml"
_FALLBACK_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _level_name(log_level: Optional[str]) -> Optional[str]:
    if not log_level:
        return None
    name = str(log_level).upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"unknown log level {log_level!r}")
    return name


def _drop_file_handlers(cfg: Dict[str, Any]) -> None:
    """Remove FileHandler entries and every reference to them."""
    handlers = cfg.get("handlers") or {}
    dropped: Set[str] = {
        name for name, handler in handlers.items()
        if handler.get("class") == "logging.FileHandler"
    }
    for name in dropped:
        del handlers[name]
    sections = list((cfg.get("loggers") or {}).values())
    if cfg.get("root"):
        sections.append(cfg["root"])
    for section in sections:
        if "handlers" in section:
            section["handlers"] = [h for h in section["handlers"] if h not in dropped]


def configure_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    config_path: Optional[str] = None,
) -> None:
    """Apply the YAML logging configuration.

    The file handler is opt-in: without ``log_file`` it is removed, so a
    library user never gets a log file in the working directory. The level
    override only touches ``displacementatlas`` loggers; third-party loggers
    keep their configured levels. Falls back to basicConfig when the YAML
    file is missing.

    Args:
        log_level: Override level for displacementatlas loggers (e.g. "DEBUG").
        log_file: Path for the file handler; None disables file logging.
        config_path: Path to logging.yaml (defaults to config/logging.yaml).

    Raises:
        ValueError: If ``log_level`` is not a known level name.
    """
    level = _level_name(log_level)
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH

    if not path.is_file():
        logging.basicConfig(level=level or logging.INFO, format=_FALLBACK_FORMAT)
        if level:
            logging.getLogger(_PACKAGE_LOGGER).setLevel(level)
        return

    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    if log_file:
        for handler_cfg in (cfg.get("handlers") or {}).values():
            if handler_cfg.get("class") == "logging.FileHandler":
                handler_cfg["filename"] = log_file
    else:
        _drop_file_handlers(cfg)

    if level:
        for name, logger_cfg in (cfg.get("loggers") or {}).items():
            if name == _PACKAGE_LOGGER or name.startswith(_PACKAGE_LOGGER + "."):
                logger_cfg["level"] = level

    logging.config.dictConfig(cfg)


def get_logger(name: str) -> logging.Logger:
    """Get a namespaced logger under 'displacementatlas'.

    Args:
        name: Module or component name (e.g., "clients.acled_client").

    Returns:
        Logger instance with full 'displacementatlas.<name>' namespace.
    """
    if name.startswith("displacementatlas"):
        return logging.getLogger(name)
    return logging.getLogger(f"displacementatlas.{name}")


class ScopeContextAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes every message with the scope being fetched.

    Usage:
        log = get_scope_logger(__name__, "acled_SYR_2023")
        log.info("fetching live")
        # Output: [INFO] displacementatlas.cache.tiered_cache: [acled_SYR_2023] fetching live
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        scope = self.extra.get("scope", "-")
        return f"[{scope}] {msg}", kwargs


def get_scope_logger(name: str, scope: object) -> ScopeContextAdapter:
    """Get a scope-aware logger adapter.

    Args:
        name: Module or component name.
        scope: Scope (or any object whose str() is the cache key).

    Returns:
        LoggerAdapter that prefixes all messages with [scope].
    """
    return ScopeContextAdapter(get_logger(name), {"scope": str(scope)})
