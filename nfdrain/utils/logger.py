import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

# 日志格式配置
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_DIR = "logs"
LOG_FILE_NAME = "nfdrain.log"


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """获取指定名称的日志器，日志统一交给根日志器的处理器输出"""
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def init_logger(
    log_dir: Optional[str] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    to_file: bool = True
) -> None:
    """
    初始化全局日志系统（进程启动时调用）

    参数:
        log_dir: 日志存储目录（默认 logs/）
        level: 全局日志级别
        max_bytes: 单个日志文件最大字节数
        backup_count: 日志备份文件数量
        to_file: 是否写入轮转日志文件
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 清除已有的处理器（避免重复）
    if root_logger.handlers:
        root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if to_file:
        log_dir = log_dir or DEFAULT_LOG_DIR
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.debug(f"日志系统初始化完成，日志目录: {log_dir}")


def set_log_level(level: int) -> None:
    """设置全局日志级别"""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def parse_log_level(name: str, default: int = logging.INFO) -> int:
    """将 "DEBUG"/"info" 等字符串转换为日志级别"""
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else default
