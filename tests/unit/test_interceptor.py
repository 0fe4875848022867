import threading
import unittest

from nfdrain.netqueue.interceptor import PacketInterceptor
from tests.data.fakes import FakePacket, FakeSource, wait_for


class TestPacketInterceptorGate(unittest.TestCase):
    """测试放行开关，不启动后台线程"""

    def setUp(self):
        self.source = FakeSource()
        self.interceptor = PacketInterceptor(100, source=self.source)

    def _handle_in_thread(self, packet):
        thread = threading.Thread(target=self.interceptor.handle_packet, args=(packet,), daemon=True)
        thread.start()
        return thread

    def test_accepts_immediately_when_open(self):
        packet = FakePacket()
        self.interceptor.handle_packet(packet)

        self.assertEqual(packet.accept_count, 1)
        self.assertEqual(self.interceptor.report_delayed(), 0)

    def test_holds_until_resume(self):
        """截留期间不给出裁决，恢复后 accept 一次"""
        self.interceptor.hold()
        packet = FakePacket()
        thread = self._handle_in_thread(packet)

        self.assertTrue(wait_for(lambda: self.interceptor.held == 1))
        self.assertFalse(packet.accepted.wait(0.05))

        self.interceptor.resume()
        thread.join(timeout=2)

        self.assertEqual(packet.accept_count, 1)
        self.assertEqual(self.interceptor.held, 0)
        self.assertEqual(self.interceptor.stats["packets_delayed"], 1)

    def test_resume_wakes_every_held_packet(self):
        self.interceptor.hold()
        packets = [FakePacket() for _ in range(5)]
        threads = [self._handle_in_thread(p) for p in packets]
        self.assertTrue(wait_for(lambda: self.interceptor.held == 5))

        self.interceptor.resume()
        for thread in threads:
            thread.join(timeout=2)

        self.assertTrue(all(p.accept_count == 1 for p in packets))

    def test_report_delayed_logs_and_resets(self):
        self.interceptor.hold()
        thread = self._handle_in_thread(FakePacket())
        self.assertTrue(wait_for(lambda: self.interceptor.held == 1))
        self.interceptor.resume()
        thread.join(timeout=2)

        with self.assertLogs("netqueue.interceptor", level="INFO") as logs:
            self.assertEqual(self.interceptor.report_delayed(), 1)
        self.assertIn("延迟了 1 个数据包", logs.output[0])
        self.assertEqual(self.interceptor.report_delayed(), 0)


class TestPacketInterceptorLoop(unittest.TestCase):
    """测试后台处理线程"""

    def setUp(self):
        self.source = FakeSource()
        self.interceptor = PacketInterceptor(100, packet_timeout=0.02, source=self.source)
        self.interceptor.start()

    def tearDown(self):
        self.interceptor.stop()

    def test_start_opens_source(self):
        self.assertTrue(self.interceptor.is_running)
        self.assertTrue(self.source.opened)
        self.assertIs(self.source.handler.__self__, self.interceptor)

    def test_packets_accepted_while_open(self):
        packets = [self.source.push(FakePacket()) for _ in range(3)]
        for packet in packets:
            self.assertTrue(packet.accepted.wait(2))
        self.assertEqual(self.interceptor.stats["packets_accepted"], 3)
        self.assertEqual(self.interceptor.stats["packets_delayed"], 0)

    def test_delayed_count_reported_on_idle_tick(self):
        self.interceptor.hold()
        packet = self.source.push(FakePacket())
        self.assertTrue(wait_for(lambda: self.interceptor.held == 1))

        with self.assertLogs("netqueue.interceptor", level="INFO") as logs:
            self.interceptor.resume()
            self.assertTrue(packet.accepted.wait(2))
            self.assertTrue(wait_for(lambda: any("延迟了 1 个数据包" in line for line in logs.output)))

    def test_stop_releases_held_packets(self):
        self.interceptor.hold()
        packet = self.source.push(FakePacket())
        self.assertTrue(wait_for(lambda: self.interceptor.held == 1))

        self.interceptor.stop()

        self.assertEqual(packet.accept_count, 1)
        self.assertFalse(self.interceptor.is_running)
        self.assertTrue(self.source.closed)

    def test_status(self):
        status = self.interceptor.get_status()
        self.assertTrue(status["is_running"])
        self.assertTrue(status["accepting"])
        self.assertEqual(status["queue_num"], 100)
        self.assertEqual(status["threads"], ["PacketInterceptor-100"])


if __name__ == '__main__':
    unittest.main()
