"""Provider plugin process management and wire protocol."""

from tfpluginschema.plugin.launcher import Handshake, HandshakeConfig, PluginHandle, PluginLauncher
from tfpluginschema.plugin.wire import Generation, messages_for

__all__ = [
    "Generation",
    "Handshake",
    "HandshakeConfig",
    "PluginHandle",
    "PluginLauncher",
    "messages_for",
]
