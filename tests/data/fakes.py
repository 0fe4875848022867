"""测试用的内核队列、数据包和 iptables 替身，以及队列统计样本"""
import queue
import socket
import subprocess
import threading
import time

import dpkt

# /proc/net/netfilter/nfnetlink_queue 样本
ACCOUNTING_QUEUE_1 = "1 0 0 2 65531 0 0 1 1\n"
ACCOUNTING_QUEUE_100 = "100 4242 3 2 65531 0 0 57 1\n"


def wait_for(predicate, timeout=2.0, interval=0.01):
    """轮询直到条件成立，超时返回 False"""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def syn_payload(src="192.0.2.10", sport=51000, dst="10.0.0.1", dport=443):
    """构造一个 TCP SYN 包的 IPv4 字节"""
    tcp = dpkt.tcp.TCP(sport=sport, dport=dport, flags=dpkt.tcp.TH_SYN)
    ip = dpkt.ip.IP(
        src=socket.inet_aton(src),
        dst=socket.inet_aton(dst),
        p=dpkt.ip.IP_PROTO_TCP,
        data=tcp
    )
    return bytes(ip)


class FakePacket:
    """记录 accept 次数的数据包"""

    def __init__(self, payload=None):
        self.payload = payload if payload is not None else syn_payload()
        self.accept_count = 0
        self.accepted = threading.Event()

    def get_payload(self):
        return self.payload

    def accept(self):
        self.accept_count += 1
        self.accepted.set()


class FakeSource:
    """用普通队列模拟 NFQUEUE，poll() 在调用线程内处理数据包"""

    def __init__(self, open_error=None):
        self.packets = queue.Queue()
        self.handler = None
        self.opened = False
        self.closed = False
        self._open_error = open_error

    def open(self, handler):
        if self._open_error is not None:
            raise self._open_error
        self.handler = handler
        self.opened = True

    def poll(self, timeout):
        try:
            packet = self.packets.get(timeout=timeout)
        except queue.Empty:
            return False
        self.handler(packet)
        return True

    def close(self):
        self.closed = True

    def push(self, packet):
        self.packets.put(packet)
        return packet


class RecordingRunner:
    """替代 subprocess.run，记录执行的 iptables 命令"""

    def __init__(self, fail_flag=None, failures=None, returncode=1, stderr="iptables: Resource temporarily unavailable."):
        self.commands = []
        self.fail_flag = fail_flag
        self.failures = failures
        self.returncode = returncode
        self.stderr = stderr
        self._lock = threading.Lock()

    def __call__(self, command, **kwargs):
        with self._lock:
            self.commands.append(list(command))
            should_fail = self.fail_flag is not None and self.fail_flag in command
            if should_fail and self.failures is not None:
                should_fail = self.failures > 0
                self.failures -= 1
        if should_fail:
            raise subprocess.CalledProcessError(self.returncode, command, output="", stderr=self.stderr)
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

    def flags(self):
        """按顺序返回 (动作, 目标地址)"""
        with self._lock:
            return [(c[1], c[c.index("--destination") + 1]) for c in self.commands]
