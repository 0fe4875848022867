"""
NFQUEUE 数据包截留组件

后台线程不断从内核队列取包：放行状态下立即 accept；截留状态下在条件变量上
等待，直到放行后再 accept。本组件从不主动丢弃数据包，队列溢出时由内核行为决定。
"""
import logging
import select
import threading
from typing import Any, Callable, Dict, Optional, Protocol

from nfdrain.system.base_component import BaseComponent
from nfdrain.utils.helpers import describe_packet
from nfdrain.utils.logger import get_logger

MAX_PACKETS_IN_QUEUE = 65536
PACKET_TIMEOUT = 0.1  # 100ms


class Packet(Protocol):
    """内核队列中的数据包"""

    def get_payload(self) -> bytes: ...

    def accept(self) -> None: ...


class PacketSource(Protocol):
    """数据包来源：把到达的数据包逐个交给处理函数"""

    def open(self, handler: Callable[[Packet], None]) -> None: ...

    def poll(self, timeout: float) -> bool: ...

    def close(self) -> None: ...


class NetfilterQueueSource:
    """基于 netfilterqueue 库的数据包来源"""

    def __init__(self, queue_num: int, max_packets: int = MAX_PACKETS_IN_QUEUE):
        self.queue_num = queue_num
        self.max_packets = max_packets
        self._nfqueue = None
        self._fd: Optional[int] = None

    def open(self, handler: Callable[[Packet], None]) -> None:
        """绑定队列，需要 CAP_NET_ADMIN 权限"""
        from netfilterqueue import NetfilterQueue

        self._nfqueue = NetfilterQueue()
        self._nfqueue.bind(self.queue_num, handler, max_len=self.max_packets)
        self._fd = self._nfqueue.get_fd()

    def poll(self, timeout: float) -> bool:
        """
        等待数据包到达

        返回:
            超时内有数据包并已处理返回 True，超时返回 False
        """
        readable, _, _ = select.select([self._fd], [], [], timeout)
        if not readable:
            return False
        self._nfqueue.run(block=False)
        return True

    def close(self) -> None:
        if self._nfqueue is not None:
            self._nfqueue.unbind()
            self._nfqueue = None
            self._fd = None


class PacketInterceptor(BaseComponent):
    """数据包截留组件，根据放行开关决定立即放行还是截留数据包"""

    def __init__(
        self,
        queue_num: int,
        max_packets: int = MAX_PACKETS_IN_QUEUE,
        packet_timeout: float = PACKET_TIMEOUT,
        source: Optional[PacketSource] = None
    ):
        super().__init__()
        self.logger = get_logger("netqueue.interceptor")
        self.queue_num = queue_num
        self.max_packets = max_packets
        self.packet_timeout = packet_timeout
        self._source = source or NetfilterQueueSource(queue_num, max_packets)

        # 放行开关及其条件变量，所有修改都在锁内进行
        self._gate = threading.Condition(threading.Lock())
        self._accepting = True
        self._delayed = 0   # 自上次报告以来被截留过的数据包数
        self._held = 0      # 当前正在等待放行的数据包数

        self._stop_event = threading.Event()

        self.stats = {
            "packets_accepted": 0,
            "packets_delayed": 0
        }

    @property
    def accepting(self) -> bool:
        with self._gate:
            return self._accepting

    @property
    def held(self) -> int:
        """当前被截留的数据包数"""
        with self._gate:
            return self._held

    def hold(self) -> None:
        """关闭放行开关，此后到达的数据包被截留"""
        with self._gate:
            self._accepting = False
        self.logger.debug(f"队列 {self.queue_num} 开始截留数据包")

    def resume(self) -> None:
        """打开放行开关并唤醒所有被截留的数据包"""
        with self._gate:
            self._accepting = True
            self._gate.notify_all()
        self.logger.debug(f"队列 {self.queue_num} 恢复放行数据包")

    def handle_packet(self, packet: Packet) -> None:
        """对单个数据包给出 accept 裁决，截留期间阻塞直到放行"""
        with self._gate:
            delayed = not self._accepting
            if delayed:
                self._held += 1
                if self.logger.isEnabledFor(logging.DEBUG):
                    self.logger.debug(f"截留数据包: {describe_packet(packet.get_payload())}")
                while not self._accepting:
                    self._gate.wait()
                self._held -= 1
                self._delayed += 1
                self.stats["packets_delayed"] += 1
            self.stats["packets_accepted"] += 1
        packet.accept()

    def report_delayed(self) -> int:
        """记录并清零自上次报告以来的截留数据包数"""
        with self._gate:
            count, self._delayed = self._delayed, 0
        if count > 0:
            self.logger.info(f"重载期间延迟了 {count} 个数据包")
        return count

    def _process_loop(self) -> None:
        """数据包处理循环"""
        while not self._stop_event.is_set():
            try:
                if not self._source.poll(self.packet_timeout):
                    self.report_delayed()
            except OSError as e:
                if self._stop_event.is_set():
                    break
                self.record_error(e)
                self.logger.error(f"读取队列 {self.queue_num} 出错: {e}")
                self._stop_event.wait(self.packet_timeout)
        self.report_delayed()

    def start(self) -> None:
        """绑定内核队列并启动处理线程"""
        if self.is_running:
            self.logger.warning("截留组件已在运行中")
            return

        self._source.open(self.handle_packet)
        super().start()
        self._stop_event.clear()
        self._spawn(self._process_loop, f"PacketInterceptor-{self.queue_num}")
        self.logger.info(f"截留组件已启动 (队列: {self.queue_num}, 最大长度: {self.max_packets})")

    def stop(self) -> None:
        """停止处理线程，放行所有被截留的数据包并解绑队列"""
        if not self.is_running:
            return

        self._stop_event.set()
        self.resume()
        self._join_threads(timeout=5)
        self._source.close()
        super().stop()
        self.logger.info("截留组件已停止")

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        with self._gate:
            status.update({
                "queue_num": self.queue_num,
                "max_packets": self.max_packets,
                "accepting": self._accepting,
                "held": self._held,
                "stats": self.stats.copy()
            })
        return status
