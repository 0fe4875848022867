from typing import Optional

import typer

from nfdrain.cli.utils import get_config, print_error, print_info, print_warning
from nfdrain.monitoring.proc_netfilter import AccountingParseError, QueueStats, read_proc_netfilter

HEADER = ("id", "port_id", "waiting", "copy_mode", "copy_range",
          "queue_dropped", "user_dropped", "last_seq", "flag")


def format_stats(stats: QueueStats) -> str:
    """格式化一行队列统计"""
    values = (stats.id, stats.port_id, stats.waiting, stats.copy_mode, stats.copy_range,
              stats.queue_dropped, stats.user_dropped, stats.last_seq, stats.flag)
    return "  ".join(f"{value:>{len(name)}}" for name, value in zip(HEADER, values))


def main(
    ctx: typer.Context,
    queue_num: Optional[int] = typer.Option(
        None, "--queue", "-q",
        help="只显示指定队列"
    )
):
    """
    显示内核 NFQUEUE 队列统计
    """
    config = get_config(ctx)
    path = config.get("monitoring.proc_path", "/proc/net/netfilter/nfnetlink_queue")

    try:
        proc = read_proc_netfilter(path)
    except FileNotFoundError:
        print_info("没有活动的内核队列")
        return
    except (OSError, AccountingParseError) as e:
        print_error(f"读取队列统计失败: {e}")
        raise typer.Exit(1)

    ids = proc.ids() if queue_num is None else [queue_num]
    rows = [proc.get(queue_id) for queue_id in ids]
    if queue_num is not None and rows[0] is None:
        print_warning(f"队列 {queue_num} 未绑定")
        raise typer.Exit(1)

    typer.echo("  ".join(HEADER))
    for stats in rows:
        typer.echo(format_stats(stats))
