"""
守护进程命令模块

SIGUSR1 开始截留，SIGUSR2 结束截留，SIGINT/SIGTERM 停止进程。
"""
import queue
import signal
from typing import List, Optional

import typer

from nfdrain.cli.utils import (
    apply_session_options,
    get_config,
    print_error,
    print_info,
    remove_pid_file,
    write_pid_file,
)
from nfdrain.netqueue.session import SessionState
from nfdrain.system.system_manager import SystemManager
from nfdrain.utils.logger import get_logger

logger = get_logger("cli.run")

CAPTURE = "capture"
RELEASE = "release"
STOP = "stop"


def _install_signal_handlers(commands: "queue.Queue[str]") -> None:
    signal.signal(signal.SIGUSR1, lambda signum, frame: commands.put(CAPTURE))
    signal.signal(signal.SIGUSR2, lambda signum, frame: commands.put(RELEASE))
    signal.signal(signal.SIGTERM, lambda signum, frame: commands.put(STOP))
    signal.signal(signal.SIGINT, lambda signum, frame: commands.put(STOP))


def serve(manager: SystemManager, commands: "queue.Queue[str]") -> None:
    """处理截留指令直到收到停止指令"""
    session = manager.drain_session
    while True:
        try:
            command = commands.get(timeout=1)
        except queue.Empty:
            continue

        logger.info(f"收到指令: {command}")
        if command == CAPTURE:
            if session.state is SessionState.DRAINING:
                logger.warning("已在截留中，忽略重复的开始截留指令")
                continue
            session.capture()
        elif command == RELEASE:
            session.release()
        elif command == STOP:
            break


def main(
    ctx: typer.Context,
    address: Optional[List[str]] = typer.Option(
        None, "--address", "-a",
        help="截留地址，可重复或逗号分隔，覆盖配置 netqueue.addresses"
    ),
    queue_num: Optional[int] = typer.Option(
        None, "--queue", "-q",
        help="NFQUEUE 队列号，覆盖配置 netqueue.queue_num"
    ),
    pid_file: Optional[str] = typer.Option(
        None, "--pid-file", "-p",
        help="PID文件路径"
    )
):
    """
    以守护进程方式运行，通过信号控制截留
    """
    config = get_config(ctx)
    apply_session_options(config, address, queue_num)
    pid_file = pid_file or config.get("general.pid_file", "nfdrain.pid")

    manager = SystemManager(config)
    if not manager.start_system():
        print_error("系统启动失败")
        raise typer.Exit(1)

    commands: "queue.Queue[str]" = queue.Queue()
    _install_signal_handlers(commands)
    write_pid_file(pid_file)
    print_info("系统正在运行，SIGUSR1 开始截留，SIGUSR2 结束截留，按 Ctrl+C 停止")

    try:
        serve(manager, commands)
    finally:
        manager.stop_system()
        remove_pid_file(pid_file)
        print_info("系统已停止")
