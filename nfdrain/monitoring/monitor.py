import os
import threading
import time
from datetime import datetime
from typing import Any, Dict, Optional

import psutil

from nfdrain.config.config_manager import ConfigManager
from nfdrain.monitoring.proc_netfilter import (
    AccountingParseError,
    ProcNetfilter,
    QueueStats,
)
from nfdrain.system.base_component import BaseComponent
from nfdrain.utils.logger import get_logger


class QueueMonitor(BaseComponent):
    """队列监控组件，定期读取内核队列统计并记录日志"""

    def __init__(self, config: Optional[ConfigManager] = None, proc: Optional[ProcNetfilter] = None):
        super().__init__()
        self.config = config or ConfigManager()
        self.logger = get_logger("monitoring.monitor")

        self.queue_num = int(self.config.get("netqueue.queue_num", 100))
        self.max_packets = int(self.config.get("netqueue.max_packets", 65536))
        self.interval = float(self.config.get("monitoring.interval", 10))
        self.waiting_warn_ratio = float(self.config.get("monitoring.waiting_warn_ratio", 0.5))

        self.proc = proc or ProcNetfilter(
            self.config.get("monitoring.proc_path", "/proc/net/netfilter/nfnetlink_queue")
        )
        self._process = psutil.Process(os.getpid())

        self._stop_event = threading.Event()
        self._last_stats: Optional[QueueStats] = None
        self._latest_metrics: Optional[Dict[str, Any]] = None

    def collect(self) -> Dict[str, Any]:
        """采集一次队列统计，并对丢包和积压发出告警"""
        metrics: Dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "queue_num": self.queue_num,
            "queue": None,
            "process": {
                "pid": self._process.pid,
                "memory": self._process.memory_info().rss
            }
        }

        try:
            self.proc.refresh()
        except FileNotFoundError:
            self.logger.debug("没有活动的内核队列")
            self._last_stats = None
            self._latest_metrics = metrics
            return metrics

        stats = self.proc.get(self.queue_num)
        if stats is None:
            self.logger.debug(f"队列 {self.queue_num} 未绑定")
        else:
            metrics["queue"] = {
                "waiting": stats.waiting,
                "queue_dropped": stats.queue_dropped,
                "user_dropped": stats.user_dropped,
                "last_seq": stats.last_seq
            }
            self.logger.debug(
                f"队列监控 - 队列: {stats.id} 排队: {stats.waiting} "
                f"内核丢弃: {stats.queue_dropped} 用户态丢弃: {stats.user_dropped} "
                f"进程内存: {metrics['process']['memory']/1024/1024:.1f}MB"
            )
            self._check_thresholds(stats)

        self._last_stats = stats
        self._latest_metrics = metrics
        return metrics

    def _check_thresholds(self, stats: QueueStats) -> None:
        previous = self._last_stats
        if previous is not None:
            if stats.queue_dropped > previous.queue_dropped:
                self.logger.warning(
                    f"队列 {stats.id} 已满，内核丢弃了 {stats.queue_dropped - previous.queue_dropped} 个数据包"
                )
            if stats.user_dropped > previous.user_dropped:
                self.logger.warning(
                    f"队列 {stats.id} 向用户态投递失败 {stats.user_dropped - previous.user_dropped} 次"
                )
        if stats.waiting > self.max_packets * self.waiting_warn_ratio:
            self.logger.warning(f"队列 {stats.id} 积压过多: {stats.waiting}/{self.max_packets}")

    def _monitor_loop(self) -> None:
        """监控主循环"""
        while not self._stop_event.is_set():
            start_time = time.time()
            try:
                self.collect()
            except (OSError, AccountingParseError, psutil.Error) as e:
                self.record_error(e)
                self.logger.error(f"采集队列统计失败: {e}")

            elapsed = time.time() - start_time
            self._stop_event.wait(max(0.0, self.interval - elapsed))

    def get_latest_metrics(self) -> Dict[str, Any]:
        """获取最近一次的监控指标"""
        return self._latest_metrics.copy() if self._latest_metrics else {}

    def start(self) -> None:
        """启动队列监控"""
        if self.is_running:
            self.logger.warning("队列监控已在运行中")
            return

        super().start()
        self._stop_event.clear()
        self._spawn(self._monitor_loop, "QueueMonitor")
        self.logger.info(f"队列监控已启动，监控间隔: {self.interval}秒")

    def stop(self) -> None:
        """停止队列监控"""
        if not self.is_running:
            return

        self._stop_event.set()
        self._join_threads(timeout=self.interval + 1)
        super().stop()
        self.logger.info("队列监控已停止")

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status.update({
            "interval": self.interval,
            "queue_num": self.queue_num,
            "proc_path": self.proc.path,
            "has_latest_metrics": bool(self._latest_metrics)
        })
        return status
