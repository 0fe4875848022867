"""
重载期间的连接截留会话

外部编排者在重载代理前调用 capture()，重载完成后调用 release()：

    session.capture()      # 安装重定向规则并开始截留，确认后返回
    reload_proxy()
    session.release()      # 删除规则并放行所有被截留的连接

所有截留周期由同一个控制线程串行执行，上一个周期完整结束前，
下一个 capture() 的规则安装不会开始。
"""
import abc
import enum
import os
import queue
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Sequence

from nfdrain.netqueue.firewall import FirewallError, FirewallRuleManager
from nfdrain.netqueue.interceptor import PacketInterceptor
from nfdrain.system.base_component import BaseComponent
from nfdrain.utils.helpers import IPAddress
from nfdrain.utils.logger import get_logger

logger = get_logger("netqueue.session")

# 放入请求队列后控制线程退出
_SHUTDOWN = object()


class NetQueue(abc.ABC):
    """在代理重载期间截留新连接的能力"""

    @abc.abstractmethod
    def capture(self) -> None:
        """开始截留，确认生效后返回"""

    @abc.abstractmethod
    def release(self) -> None:
        """结束截留，发出信号后立即返回"""

    @contextmanager
    def drain(self) -> Iterator[None]:
        """在作用域内截留新连接"""
        self.capture()
        try:
            yield
        finally:
            self.release()


class SessionState(enum.Enum):
    IDLE = "idle"
    DRAINING = "draining"


def abort_process(error: Exception) -> None:
    """默认的致命错误处理：规则只装了一半时无法安全继续运行，直接终止进程"""
    logger.critical(f"防火墙规则操作失败，进程终止: {error}")
    os._exit(1)


class DrainSession(NetQueue, BaseComponent):
    """
    截留会话控制器

    Args:
        addresses: 需要截留新连接的目标地址
        queue_num: NFQUEUE 队列号
        firewall: 规则管理器，默认按 addresses/queue_num 构造
        interceptor: 截留组件，默认按 queue_num 构造
        on_fatal: 规则安装/删除失败时的处理函数，默认终止进程；
            处理函数返回时，安装失败会以 FirewallError 抛给 capture() 的调用者
    """

    def __init__(
        self,
        addresses: Sequence[IPAddress],
        queue_num: int,
        firewall: Optional[FirewallRuleManager] = None,
        interceptor: Optional[PacketInterceptor] = None,
        on_fatal: Callable[[Exception], None] = abort_process
    ):
        super().__init__()
        self.addresses = tuple(addresses)
        self.queue_num = queue_num
        self.firewall = firewall or FirewallRuleManager(self.addresses, queue_num)
        self.interceptor = interceptor or PacketInterceptor(queue_num)
        self._on_fatal = on_fatal

        # 单槽交接：请求 -> 确认 -> 释放
        self._capture_requests: "queue.Queue[Optional[object]]" = queue.Queue(maxsize=1)
        self._capturing: "queue.Queue[Optional[Exception]]" = queue.Queue(maxsize=1)
        self._release_requests: "queue.Queue[None]" = queue.Queue(maxsize=1)

        self._state_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._captures_pending = 0      # 已提交但尚未开始截留的 capture() 数
        self._release_pending = False   # 截留开始前就到达的 release()
        self.sessions_completed = 0

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    def start(self) -> None:
        """绑定内核队列并启动控制线程；没有配置地址时不做任何事"""
        if self.is_running:
            return
        if not self.addresses:
            logger.info("未配置截留地址，重载期间不截留连接")
            super().start()
            return

        self.interceptor.start()
        super().start()
        self._spawn(self._control_loop, f"DrainSession-{self.queue_num}")
        logger.info(f"截留会话已就绪 (队列: {self.queue_num}, 地址: {', '.join(map(str, self.addresses))})")

    def stop(self) -> None:
        """
        停止控制线程和截留组件

        截留进行中时先结束截留，等规则删除、控制线程退出后再解绑内核队列，
        否则残留的 NFQUEUE 规则会让内核丢弃所有新连接。
        """
        if not self.is_running:
            return
        if self.addresses:
            with self._state_lock:
                draining = self._state is SessionState.DRAINING or self._captures_pending > 0
            if draining:
                logger.warning("停止时仍在截留，先结束截留")
                self.release()
            self._capture_requests.put(_SHUTDOWN)
            self._join_threads(timeout=5)
            self.interceptor.stop()
        super().stop()

    def capture(self) -> None:
        if not self.addresses:
            return
        if not self.is_running:
            raise RuntimeError("截留会话未启动")
        with self._state_lock:
            self._captures_pending += 1
        self._capture_requests.put(None)
        error = self._capturing.get()
        if error is not None:
            raise error

    def release(self) -> None:
        """
        结束截留

        capture() 已提交但截留尚未开始时到达的 release() 会被记下，
        截留开始后立即结束；没有任何截留时忽略。
        """
        if not self.addresses:
            return
        with self._state_lock:
            if self._state is not SessionState.DRAINING:
                if self._captures_pending > 0:
                    self._release_pending = True
                    logger.info("截留尚未开始，开始后立即结束")
                else:
                    logger.warning("当前没有进行中的截留，忽略 release()")
                return
            self._state = SessionState.IDLE
        self._release_requests.put(None)

    def _control_loop(self) -> None:
        while self._capture_requests.get() is not _SHUTDOWN:
            self._run_session()
        logger.debug(f"控制线程已退出 (队列: {self.queue_num})")

    def _run_session(self) -> None:
        """执行一次完整的截留周期"""
        try:
            self.firewall.install()
        except FirewallError as e:
            self.record_error(e)
            with self._state_lock:
                self._captures_pending -= 1
                self._release_pending = False
            self._on_fatal(e)
            self._capturing.put(e)
            return

        try:
            self.interceptor.hold()
            with self._state_lock:
                self._captures_pending -= 1
                if self._release_pending:
                    self._release_pending = False
                    self._release_requests.put(None)
                else:
                    self._state = SessionState.DRAINING
            logger.info("已开始截留新连接")
            self._capturing.put(None)
            self._release_requests.get()
        finally:
            try:
                self._remove_rules()
            finally:
                self.interceptor.resume()
                self.sessions_completed += 1
                logger.info("已结束截留，恢复放行新连接")

    def _remove_rules(self) -> None:
        try:
            self.firewall.remove()
        except FirewallError as e:
            self.record_error(e)
            self._on_fatal(e)

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status.update({
            "state": self.state.value,
            "queue_num": self.queue_num,
            "addresses": [str(a) for a in self.addresses],
            "sessions_completed": self.sessions_completed
        })
        if self.addresses:
            status["interceptor"] = self.interceptor.get_status()
        return status
