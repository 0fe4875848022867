"""
nfdrain：代理重载期间截留新TCP连接，避免连接被拒绝
"""
__version__ = "1.0.0"

from nfdrain.config.config_manager import ConfigManager
from nfdrain.netqueue.session import DrainSession, NetQueue
from nfdrain.system.system_manager import SystemManager

__all__ = ["__version__", "ConfigManager", "DrainSession", "NetQueue", "SystemManager"]
