"""
lvBridge.sync - scheduling and host integration

Runs the engine periodically, either standalone or from inside a hosting
dashboard process.
"""

from .scheduler import PeriodicRunner
from .plugin import LvBridgePlugin, init as init_plugin

__all__ = ['PeriodicRunner', 'LvBridgePlugin', 'init_plugin']
