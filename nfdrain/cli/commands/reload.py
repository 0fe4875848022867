"""
重载命令模块：在截留期间执行一次代理重载命令
"""
import subprocess
from typing import List, Optional

import typer

from nfdrain.cli.utils import apply_session_options, get_config, print_error, print_info
from nfdrain.system.system_manager import build_drain_session
from nfdrain.utils.logger import get_logger

logger = get_logger("cli.reload")


def main(
    ctx: typer.Context,
    command: List[str] = typer.Argument(
        ...,
        help="重载命令，例如: nfdrain reload -a 10.0.0.1 -- systemctl reload haproxy"
    ),
    address: Optional[List[str]] = typer.Option(
        None, "--address", "-a",
        help="截留地址，可重复或逗号分隔，覆盖配置 netqueue.addresses"
    ),
    queue_num: Optional[int] = typer.Option(
        None, "--queue", "-q",
        help="NFQUEUE 队列号，覆盖配置 netqueue.queue_num"
    )
):
    """
    截留新连接，执行重载命令，然后放行
    """
    config = get_config(ctx)
    apply_session_options(config, address, queue_num)

    session = build_drain_session(config)
    try:
        session.start()
    except OSError as e:
        print_error(f"无法绑定内核队列: {e}")
        raise typer.Exit(1)

    try:
        with session.drain():
            logger.info(f"执行重载命令: {' '.join(command)}")
            try:
                result = subprocess.run(command)
            except OSError as e:
                print_error(f"无法执行重载命令: {e}")
                raise typer.Exit(127)
    finally:
        session.stop()

    if result.returncode != 0:
        print_error(f"重载命令退出码: {result.returncode}")
    else:
        print_info("重载完成")
    raise typer.Exit(result.returncode)
