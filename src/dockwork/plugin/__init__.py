"""Plugin system for dockwork.

Built on pluggy. Built-in plugins are registered from a static table and
can be switched off with ``[plugins.<key>] enabled = false``; third-party
plugins register under the "dockwork" entry-point group.

Usage:
    from dockwork.plugin import get_plugin_manager

    pm = get_plugin_manager()
    pm.hook.dockwork_container_started(record=rec, image="alpine", run_record=run)
"""

from __future__ import annotations

import importlib

import pluggy

from dockwork.config import get_settings
from dockwork.logger import logger
from dockwork.plugin.hookspecs import DockworkSpec

__all__ = [
    "get_plugin_manager",
]

# Each entry: (module_path, class_name, config_key)
_BUILTIN_PLUGIN_SPECS: list[tuple[str, str, str]] = [
    ("dockwork.plugins.run_record", "RunRecordPlugin", "run-record"),
]


def get_plugin_manager() -> pluggy.PluginManager:
    """Create and configure the plugin manager.

    Returns:
        Configured PluginManager ready to call hooks
    """
    pm = pluggy.PluginManager("dockwork")
    pm.add_hookspecs(DockworkSpec)

    s = get_settings()

    for module_path, class_name, config_key in _BUILTIN_PLUGIN_SPECS:
        plugin_cfg = s.plugins.get(config_key)
        if plugin_cfg is not None and not plugin_cfg.enabled:
            logger.info("Plugin disabled via config", plugin=config_key)
            continue

        try:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, class_name)
            pm.register(cls(), name=f"builtin-{config_key}")
            logger.debug("Registered built-in plugin", name=config_key)
        except Exception:
            logger.exception("Failed to load built-in plugin", plugin=config_key)

    discovered = pm.load_setuptools_entrypoints("dockwork")
    if discovered:
        logger.info("Discovered third-party plugins", count=discovered)

    # Entry points sometimes name a class rather than an instance
    for plugin in list(pm.get_plugins()):
        if isinstance(plugin, type):
            plugin_name = pm.get_name(plugin) or plugin.__name__
            pm.unregister(plugin=plugin)
            logger.warning(
                "Unregistered invalid class-based plugin object",
                plugin=plugin_name,
            )

    return pm
