"""
系统管理器
"""
from typing import Any, Dict, List, Optional

from nfdrain.config.config_manager import ConfigManager
from nfdrain.monitoring.monitor import QueueMonitor
from nfdrain.netqueue.firewall import FirewallRuleManager
from nfdrain.netqueue.interceptor import PacketInterceptor
from nfdrain.netqueue.session import DrainSession
from nfdrain.system.base_component import BaseComponent
from nfdrain.utils.helpers import parse_address_list
from nfdrain.utils.logger import get_logger


def build_drain_session(config: ConfigManager) -> DrainSession:
    """
    按配置构造截留会话

    Raises:
        ValueError: netqueue.addresses 中存在无效地址
    """
    addresses = parse_address_list(config.get("netqueue.addresses", []))
    queue_num = int(config.get("netqueue.queue_num", 100))

    firewall = FirewallRuleManager(
        addresses,
        queue_num,
        iptables_path=config.get("firewall.iptables_path", "iptables"),
        retries=int(config.get("firewall.retries", 0)),
        retry_delay=float(config.get("firewall.retry_delay", 0.5))
    )
    interceptor = PacketInterceptor(
        queue_num,
        max_packets=int(config.get("netqueue.max_packets", 65536)),
        packet_timeout=float(config.get("netqueue.packet_timeout", 0.1))
    )
    return DrainSession(addresses, queue_num, firewall=firewall, interceptor=interceptor)


class SystemManager(BaseComponent):
    """系统管理器，负责按配置创建、启动、停止所有组件，并汇总组件状态"""

    def __init__(self, config: Optional[ConfigManager] = None):
        super().__init__()
        self.config = config or ConfigManager()
        self.logger = get_logger("system.manager")

        # 组件字典，按启动顺序插入
        self._components: Dict[str, BaseComponent] = {}

        # 组件依赖关系
        self._component_dependencies: Dict[str, List[str]] = {
            "drain_session": [],
            "queue_monitor": ["drain_session"]
        }

        self._initialize_components()

    def _initialize_components(self) -> None:
        """按配置初始化所有组件"""
        self._components["drain_session"] = build_drain_session(self.config)

        if self.config.get("monitoring.enabled", True):
            self._components["queue_monitor"] = QueueMonitor(self.config)

        self.logger.debug(f"组件初始化完成: {', '.join(self._components)}")

    def _get_component_start_order(self) -> List[str]:
        """获取组件启动顺序（依赖关系的拓扑排序）"""
        visited = set()
        order: List[str] = []

        def dfs(component_name: str) -> None:
            if component_name in visited:
                return
            visited.add(component_name)
            for dep in self._component_dependencies.get(component_name, []):
                if dep in self._components:
                    dfs(dep)
            order.append(component_name)

        for component in self._components:
            dfs(component)
        return order

    @property
    def drain_session(self) -> DrainSession:
        return self._components["drain_session"]

    def get_component(self, name: str) -> Optional[BaseComponent]:
        """按名称获取组件"""
        return self._components.get(name)

    def start_system(self) -> bool:
        """
        按依赖顺序启动所有组件

        返回:
            是否全部启动成功；失败时已启动的组件会被停止
        """
        if self.is_running:
            self.logger.warning("系统已在运行中")
            return True

        started: List[str] = []
        for name in self._get_component_start_order():
            try:
                self._components[name].start()
            except (OSError, RuntimeError) as e:
                self.record_error(e)
                self.logger.error(f"启动组件 {name} 失败: {e}")
                for started_name in reversed(started):
                    self._components[started_name].stop()
                return False
            started.append(name)
            self.logger.debug(f"组件 {name} 已启动")

        super().start()
        self.logger.info("系统已启动")
        return True

    def stop_system(self) -> None:
        """按启动顺序的逆序停止所有组件"""
        if not self.is_running:
            return

        for name in reversed(self._get_component_start_order()):
            component = self._components[name]
            try:
                component.stop()
            except (OSError, RuntimeError) as e:
                self.record_error(e)
                self.logger.error(f"停止组件 {name} 失败: {e}")

        super().stop()
        self.logger.info("系统已停止")

    def start(self) -> None:
        self.start_system()

    def stop(self) -> None:
        self.stop_system()

    def get_system_status(self) -> Dict[str, Any]:
        """汇总所有组件的状态"""
        status = self.get_status()
        status["components"] = {
            name: component.get_status() for name, component in self._components.items()
        }
        return status
