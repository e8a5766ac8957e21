"""
Name -> plugin class lookup used by the CLI.

Plugins are registered by their ``name`` attribute. Instances are created by
the caller and used as async context managers; the registry holds classes
only.
"""

from __future__ import annotations

import logging

from ..core.errors import MediaSourceError
from .archiveorg import ArchiveOrgPlugin
from .base import BasePlugin
from .jamendo import JamendoPlugin
from .plutotv import PlutoTVPlugin
from .suno import SunoPlugin

logger = logging.getLogger(__name__)


class UnknownSourceError(MediaSourceError):
    """Raised when no plugin is registered under the requested name."""


PLUGINS: dict[str, type[BasePlugin]] = {}


def register(plugin_class: type[BasePlugin]) -> type[BasePlugin]:
    if plugin_class.name in PLUGINS:
        logger.warning("registry.overwrite", extra={"source": plugin_class.name})
    PLUGINS[plugin_class.name] = plugin_class
    return plugin_class


for _cls in (JamendoPlugin, ArchiveOrgPlugin, PlutoTVPlugin, SunoPlugin):
    register(_cls)


def available_sources() -> list[str]:
    return sorted(PLUGINS)


def get_plugin_class(name: str) -> type[BasePlugin]:
    try:
        return PLUGINS[name.lower()]
    except KeyError:
        raise UnknownSourceError(
            f"Unknown source '{name}'. Available sources: {', '.join(available_sources())}"
        ) from None
