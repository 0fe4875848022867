"""
队列监控模块，负责读取内核 NFQUEUE 统计并记录日志
"""

from .proc_netfilter import (
    PROC_NETFILTER_QUEUE_PATH,
    AccountingParseError,
    ProcNetfilter,
    QueueStats,
    read_proc_netfilter,
)
from .monitor import QueueMonitor

__all__ = [
    "PROC_NETFILTER_QUEUE_PATH",
    "AccountingParseError",
    "ProcNetfilter",
    "QueueStats",
    "read_proc_netfilter",
    "QueueMonitor"
]
