import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

# 添加项目根目录到Python路径
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from nfdrain.config.config_manager import ConfigManager
from nfdrain.netqueue.firewall import FirewallRuleManager
from nfdrain.netqueue.interceptor import PacketInterceptor
from nfdrain.netqueue.session import DrainSession, SessionState
from nfdrain.system.system_manager import SystemManager, build_drain_session
from nfdrain.utils.helpers import parse_address_list
from tests.data.fakes import ACCOUNTING_QUEUE_100, FakePacket, FakeSource, RecordingRunner, wait_for


class TestSystemEndToEnd(unittest.TestCase):
    """系统端到端集成测试"""

    def setUp(self):
        """初始化测试环境"""
        self.test_dir = tempfile.mkdtemp()
        self.proc_path = os.path.join(self.test_dir, "nfnetlink_queue")
        with open(self.proc_path, "w") as f:
            f.write(ACCOUNTING_QUEUE_100)

        self.config = ConfigManager(config_dir=self.test_dir)
        self.config.set("netqueue.addresses", ["10.0.0.1", "10.0.0.2"])
        self.config.set("monitoring.proc_path", self.proc_path)
        self.config.set("monitoring.interval", 0.05)

        self.runner = RecordingRunner()
        self.source = FakeSource()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _fake_session(self, config, source=None):
        addresses = parse_address_list(config.get("netqueue.addresses"))
        queue_num = config.get("netqueue.queue_num")
        return DrainSession(
            addresses,
            queue_num,
            firewall=FirewallRuleManager(addresses, queue_num, runner=self.runner),
            interceptor=PacketInterceptor(queue_num, packet_timeout=0.02, source=source or self.source)
        )

    def test_build_drain_session_from_config(self):
        self.config.set("firewall.retries", 2)
        session = build_drain_session(self.config)

        self.assertEqual([str(a) for a in session.addresses], ["10.0.0.1", "10.0.0.2"])
        self.assertEqual(session.queue_num, 100)
        self.assertEqual(session.firewall.retries, 2)
        self.assertEqual(session.interceptor.max_packets, 65536)

    def test_reload_cycle(self):
        """完整的截留周期：启动、截留、放行、停止"""
        with patch("nfdrain.system.system_manager.build_drain_session", side_effect=self._fake_session):
            manager = SystemManager(self.config)

        self.assertFalse(manager.is_running)
        self.assertTrue(manager.start_system())
        try:
            monitor = manager.get_component("queue_monitor")
            self.assertTrue(wait_for(lambda: monitor.get_latest_metrics().get("queue") is not None))

            session = manager.drain_session
            session.capture()
            packets = [self.source.push(FakePacket()) for _ in range(3)]
            self.assertTrue(wait_for(lambda: session.interceptor.held == 1))
            self.assertTrue(all(p.accept_count == 0 for p in packets))

            session.release()
            for packet in packets:
                self.assertTrue(packet.accepted.wait(2))
            self.assertTrue(wait_for(lambda: session.sessions_completed == 1))
            self.assertEqual([flag for flag, _ in self.runner.flags()], ["-A", "-A", "-D", "-D"])

            status = manager.get_system_status()
            self.assertEqual(status["components"]["drain_session"]["state"], SessionState.IDLE.value)
            self.assertTrue(status["components"]["queue_monitor"]["is_running"])
        finally:
            manager.stop_system()

        self.assertFalse(manager.is_running)
        self.assertTrue(self.source.closed)

    def test_start_failure_stops_started_components(self):
        failing = FakeSource(open_error=PermissionError("Operation not permitted"))
        with patch("nfdrain.system.system_manager.build_drain_session",
                   side_effect=lambda config: self._fake_session(config, failing)):
            manager = SystemManager(self.config)

        self.assertFalse(manager.start_system())
        self.assertFalse(manager.is_running)
        self.assertFalse(manager.get_component("queue_monitor").is_running)

    def test_monitoring_disabled(self):
        self.config.set("monitoring.enabled", False)
        with patch("nfdrain.system.system_manager.build_drain_session", side_effect=self._fake_session):
            manager = SystemManager(self.config)

        self.assertIsNone(manager.get_component("queue_monitor"))
        self.assertTrue(manager.start_system())
        manager.stop_system()


if __name__ == '__main__':
    unittest.main()
