import copy
import os
from typing import Any, Dict

import yaml

from nfdrain.utils.logger import get_logger

DEFAULT_CONFIG: Dict[str, Any] = {
    "general": {
        "log_level": "INFO",
        "log_dir": "logs",
        "pid_file": "nfdrain.pid"
    },
    "netqueue": {
        "addresses": [],           # 需要在重载期间截留新连接的IPv4地址
        "queue_num": 100,          # NFQUEUE 队列号，主机上需唯一
        "max_packets": 65536,      # 内核队列最大长度
        "packet_timeout": 0.1      # 等待数据包的超时(秒)
    },
    "firewall": {
        "iptables_path": "iptables",
        "retries": 0,              # iptables 失败后的重试次数，0 表示立即失败
        "retry_delay": 0.5         # 重试间隔(秒)
    },
    "monitoring": {
        "enabled": True,
        "interval": 10,            # 队列统计采集间隔(秒)
        "proc_path": "/proc/net/netfilter/nfnetlink_queue",
        "waiting_warn_ratio": 0.5  # 排队数超过 max_packets 的该比例时告警
    }
}


def _merge(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    """递归合并配置，loaded 中的值覆盖默认值"""
    merged = copy.deepcopy(defaults)
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """配置管理器，负责加载、保存和访问配置文件"""

    def __init__(self, config_dir: str = "config"):
        """
        初始化配置管理器

        Args:
            config_dir: 配置文件目录
        """
        self.config_dir = os.path.abspath(config_dir)
        self.logger = get_logger("config_manager")
        self.config_path = os.path.join(self.config_dir, "config.yaml")

        self._config: Dict[str, Any] = {}

        self.load()

    def load(self) -> None:
        """加载配置文件，缺失的键使用默认值"""
        if not os.path.exists(self.config_path):
            self.logger.debug(f"配置文件 {self.config_path} 不存在，使用默认配置")
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"加载配置失败: {str(e)}，使用默认配置")
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return

        if not isinstance(loaded, dict):
            self.logger.error(f"配置文件格式错误: {self.config_path}，使用默认配置")
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return

        self._config = _merge(DEFAULT_CONFIG, loaded)
        self.logger.info(f"已加载配置: {self.config_path}")

    def save(self) -> None:
        """保存配置文件"""
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(self._config, f, sort_keys=False, indent=2)
        self.logger.info(f"已保存配置: {self.config_path}")

    def get(self, path: str, default: Any = None) -> Any:
        """
        通过点路径获取配置值

        Args:
            path: 配置路径，如 "netqueue.queue_num"
            default: 默认值

        Returns:
            配置值或默认值
        """
        current: Any = self._config
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, path: str, value: Any) -> None:
        """
        通过点路径设置配置值

        Args:
            path: 配置路径，如 "netqueue.addresses"
            value: 要设置的值
        """
        parts = path.split(".")
        current = self._config
        for part in parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value
        self.logger.debug(f"设置配置 {path} = {value}")

    def as_dict(self) -> Dict[str, Any]:
        """返回配置的深拷贝"""
        return copy.deepcopy(self._config)

    def __str__(self) -> str:
        return f"ConfigManager(config_dir={self.config_dir})"
