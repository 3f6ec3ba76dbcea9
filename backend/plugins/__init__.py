"""Device identification plugins and their registry."""

from .base import (
    IdentificationPlugin,
    GenericPlugin,
    plugin_supports,
    IDENTIFY_EXISTING,
    DETAILS,
    DEFAULT_NAME,
)
from .characteristics import CharacteristicPlugin
from .registry import PluginRegistry, build_default_registry, normalize_tag

__all__ = [
    "IdentificationPlugin",
    "GenericPlugin",
    "CharacteristicPlugin",
    "PluginRegistry",
    "build_default_registry",
    "normalize_tag",
    "plugin_supports",
    "IDENTIFY_EXISTING",
    "DETAILS",
    "DEFAULT_NAME",
]
