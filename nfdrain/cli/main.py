#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
nfdrain CLI主程序
"""
from typing import Optional

import typer

from nfdrain import __version__
from nfdrain.cli.commands import reload, run, stats
from nfdrain.config.config_manager import ConfigManager
from nfdrain.utils.logger import get_logger, init_logger, parse_log_level

logger = get_logger(__name__)

# 创建Typer应用
app = typer.Typer(no_args_is_help=True, add_completion=False)

app.command(name="run", help="以守护进程方式运行，通过信号控制截留")(run.main)
app.command(name="reload", help="截留新连接并执行一次重载命令")(reload.main)
app.command(name="stats", help="显示内核 NFQUEUE 队列统计")(stats.main)


@app.command()
def version():
    """显示版本号"""
    typer.echo(__version__)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: str = typer.Option("config", "--config-dir", "-c", help="配置文件目录"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="日志级别 (DEBUG, INFO, WARNING, ERROR)"),
    log_file: bool = typer.Option(True, "--log-file/--no-log-file", help="是否写入日志文件")
):
    """代理重载期间截留新TCP连接"""
    config = ConfigManager(config_dir=config_dir)
    level = parse_log_level(log_level or config.get("general.log_level", "INFO"))
    init_logger(log_dir=config.get("general.log_dir", "logs"), level=level, to_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


if __name__ == "__main__":
    app()
