import os
import sys
from typing import List, Optional

import typer

from nfdrain.config.config_manager import ConfigManager
from nfdrain.utils.helpers import parse_address_list

# 终端颜色代码
COLOR_RESET = "\033[0m"
COLOR_GREEN = "\033[32m"
COLOR_RED = "\033[31m"
COLOR_YELLOW = "\033[33m"
COLOR_BLUE = "\033[34m"


def print_success(message: str) -> None:
    """打印成功消息（绿色）"""
    print(f"{COLOR_GREEN}[+] {message}{COLOR_RESET}")


def print_error(message: str) -> None:
    """打印错误消息（红色）"""
    print(f"{COLOR_RED}[-] {message}{COLOR_RESET}", file=sys.stderr)


def print_warning(message: str) -> None:
    """打印警告消息（黄色）"""
    print(f"{COLOR_YELLOW}[!] {message}{COLOR_RESET}")


def print_info(message: str) -> None:
    """打印信息消息（蓝色）"""
    print(f"{COLOR_BLUE}[*] {message}{COLOR_RESET}")


def get_config(ctx: typer.Context) -> ConfigManager:
    """取出主程序回调中加载的配置"""
    ctx.ensure_object(dict)
    config = ctx.obj.get("config")
    if config is None:
        config = ConfigManager()
        ctx.obj["config"] = config
    return config


def apply_session_options(
    config: ConfigManager,
    addresses: Optional[List[str]],
    queue_num: Optional[int]
) -> None:
    """
    用命令行参数覆盖截留会话配置

    Args:
        config: 配置管理器
        addresses: --address 参数，每项可以是逗号分隔的多个地址
        queue_num: --queue 参数

    Raises:
        typer.Exit: 地址无效时以退出码 1 退出
    """
    if addresses:
        items = [item for value in addresses for item in value.split(",") if item.strip()]
        config.set("netqueue.addresses", items)
    if queue_num is not None:
        config.set("netqueue.queue_num", queue_num)

    try:
        parse_address_list(config.get("netqueue.addresses", []))
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)


def write_pid_file(pid_file: str) -> None:
    with open(pid_file, "w") as f:
        f.write(str(os.getpid()))


def remove_pid_file(pid_file: str) -> None:
    if os.path.exists(pid_file):
        os.remove(pid_file)
