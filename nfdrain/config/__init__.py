"""配置管理模块，负责系统配置的加载、管理和保存"""

from .config_manager import ConfigManager, DEFAULT_CONFIG

__all__ = ["ConfigManager", "DEFAULT_CONFIG"]
