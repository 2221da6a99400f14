"""Loading of ``CONFIGURATION`` dicts from plain Python modules.

Each entry names one backend. An entry carrying ``"__inherits__": "other"``
starts from the resolved ``other`` entry and overrides the keys it sets.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

logger = logging.getLogger(__name__)

INHERITS_KEY = "__inherits__"

ConfigDict = dict[str, dict[str, Any]]


class ConfigError(Exception):
    """Bad configuration: a missing parent or an inheritance cycle."""


def load_config_from_module(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Import ``module_path`` and return its ``config_name`` attribute.

    An unimportable module or a missing attribute yields ``default`` and a
    warning rather than an exception.

    >>> sorted(load_config_from_module("configs.storage_backends"))
    ['cdn', 'documents', 'history', 'packages']
    """
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.warning(f"Config module {module_path} unavailable: {e}")
        return default

    config = getattr(module, config_name, None)
    if config is None:
        logger.warning(f"{module_path} defines no {config_name}")
        return default

    logger.debug(f"Using {module_path}.{config_name}")
    return config


def resolve_config_inheritance(config_dict: ConfigDict) -> ConfigDict:
    """Flatten every ``__inherits__`` chain in ``config_dict``.

    >>> resolved = resolve_config_inheritance({
    ...     "packages": {"type": "minio", "endpoint": "s3.amazonaws.com", "bucket": "storagev2"},
    ...     "history": {"__inherits__": "packages", "bucket": "packagehistoryv1"},
    ... })
    >>> resolved["history"]["endpoint"], resolved["history"]["bucket"]
    ('s3.amazonaws.com', 'packagehistoryv1')
    """
    done: ConfigDict = {}

    def flatten(name: str, visiting: tuple[str, ...]) -> dict[str, Any]:
        if name in done:
            return done[name]
        if name in visiting:
            cycle = " -> ".join((*visiting, name))
            raise ConfigError(f"Circular inheritance detected: {cycle}")

        entry = config_dict[name]
        parent = entry.get(INHERITS_KEY)
        if parent is None:
            merged = dict(entry)
        elif parent not in config_dict:
            raise ConfigError(f"'{name}' inherits from '{parent}', which was not found")
        else:
            merged = {**flatten(parent, (*visiting, name))}
            merged.update((k, v) for k, v in entry.items() if k != INHERITS_KEY)
            logger.debug(f"'{name}' extends '{parent}'")

        done[name] = merged
        return merged

    for name in config_dict:
        flatten(name, ())
    return done


def load_and_resolve_config(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: ConfigDict | None = None,
) -> ConfigDict:
    """Load ``module_path.config_name`` and flatten its inheritance.

    Falls back to ``default`` (or ``{}``) when the module does not provide a
    dict. Raises ConfigError for a broken inheritance chain.
    """
    raw = load_config_from_module(module_path, config_name, default)
    if not isinstance(raw, dict):
        logger.warning(f"No usable {config_name} in {module_path}, falling back to default")
        return default or {}

    try:
        resolved = resolve_config_inheritance(raw)
    except ConfigError as e:
        logger.error(f"Cannot resolve {module_path}.{config_name}: {e}")
        raise

    logger.info(f"Resolved {len(resolved)} backend entries from {module_path}")
    return resolved
