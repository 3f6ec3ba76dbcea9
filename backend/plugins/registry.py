"""Explicit registry mapping device-type tags to identification plugins.

The registry is built once at startup (``build_default_registry``) and
handed to the registration engine.  Lookups are pure: an absent, empty,
or unregistered tag resolves to the registry's fallback plugin.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from plugins.base import GenericPlugin, IdentificationPlugin
from plugins.characteristics import CharacteristicPlugin

logger = logging.getLogger(__name__)


def normalize_tag(tag: Any) -> Optional[str]:
    """Case-normalize a device-type tag.  Blank tags normalize to ``None``."""
    if tag is None:
        return None
    normalized = str(tag).strip().lower()
    return normalized or None


class PluginRegistry:
    """Map normalized device-type tags to plugin instances.

    Parameters
    ----------
    fallback:
        Plugin returned for tags with no registration.  Defaults to a
        ``GenericPlugin``.
    """

    def __init__(self, fallback: Optional[IdentificationPlugin] = None) -> None:
        self._plugins: dict[str, IdentificationPlugin] = {}
        self._fallback = fallback or GenericPlugin()

    @property
    def fallback(self) -> IdentificationPlugin:
        return self._fallback

    def register(
        self, plugin: IdentificationPlugin, tag: Optional[str] = None
    ) -> None:
        """Register *plugin* under *tag* (defaults to ``plugin.kind``).

        Raises
        ------
        ValueError
            If no usable tag is given or the tag is already taken.
        """
        key = normalize_tag(tag if tag is not None else plugin.kind)
        if key is None:
            raise ValueError(f"Cannot register {plugin!r} without a device-type tag")
        if key in self._plugins:
            raise ValueError(f"Device type {key!r} is already registered")
        self._plugins[key] = plugin
        logger.debug(f"Registered plugin {plugin!r} for device type {key!r}")

    def lookup(self, tag: Any) -> IdentificationPlugin:
        """Return the plugin for *tag*, or the fallback if there is none."""
        key = normalize_tag(tag)
        if key is None:
            return self._fallback
        plugin = self._plugins.get(key)
        if plugin is None:
            logger.info(f"Unknown device type {key!r}, using generic identification")
            return self._fallback
        return plugin

    def is_registered(self, tag: Any) -> bool:
        key = normalize_tag(tag)
        return key is not None and key in self._plugins

    def tags(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, tag: Any) -> bool:
        return self.is_registered(tag)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tags())

    def __len__(self) -> int:
        return len(self._plugins)


def build_default_registry(default_tag: str = "generic") -> PluginRegistry:
    """Build the registry used by the application at startup."""
    registry = PluginRegistry()
    registry.register(CharacteristicPlugin(kind=default_tag))
    logger.info(f"Plugin registry ready: {', '.join(registry.tags())}")
    return registry
