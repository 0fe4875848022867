"""
通用工具模块，提供日志、地址解析、数据包描述和读写锁
"""

from .logger import get_logger, init_logger, set_log_level, parse_log_level
from .helpers import parse_address_list, is_ipv4, describe_packet
from .rwlock import ReadWriteLock

__all__ = [
    # 日志相关
    "get_logger",
    "init_logger",
    "set_log_level",
    "parse_log_level",
    # 辅助函数
    "parse_address_list",
    "is_ipv4",
    "describe_packet",
    # 并发
    "ReadWriteLock"
]
