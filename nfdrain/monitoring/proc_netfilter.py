"""
内核 NFQUEUE 统计信息读取

/proc/net/netfilter/nfnetlink_queue 中每个活动队列占一行，包含9个空白分隔的
非负整数：

    id portID waiting copyMode copyRange queueDropped userDropped lastSeq flag

没有活动队列时该文件不存在。
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from nfdrain.utils.logger import get_logger
from nfdrain.utils.rwlock import ReadWriteLock

logger = get_logger("monitoring.proc_netfilter")

PROC_NETFILTER_QUEUE_PATH = "/proc/net/netfilter/nfnetlink_queue"
FIELD_COUNT = 9


class AccountingParseError(ValueError):
    """统计文件中存在格式错误的记录"""


@dataclass(frozen=True)
class QueueStats:
    """单个队列的内核统计"""
    id: int
    port_id: int
    waiting: int
    copy_mode: int
    copy_range: int
    queue_dropped: int
    user_dropped: int
    last_seq: int
    flag: int

    @classmethod
    def parse(cls, line: str) -> "QueueStats":
        """解析一行统计记录"""
        fields = line.split()
        if len(fields) != FIELD_COUNT:
            raise AccountingParseError(f"应有 {FIELD_COUNT} 个字段，实际 {len(fields)} 个: {line!r}")
        try:
            values = [int(field) for field in fields]
        except ValueError:
            raise AccountingParseError(f"字段不是整数: {line!r}") from None
        if any(value < 0 for value in values):
            raise AccountingParseError(f"字段不能为负数: {line!r}")
        return cls(*values)


class ProcNetfilter:
    """
    队列统计快照

    refresh() 在写锁内完整读取一遍统计文件，解析全部成功后才替换快照，
    本轮未出现的队列随之被移除；解析失败时保留上一次的快照。
    get() 在读锁内查询，可以与 refresh() 并发调用。
    """

    def __init__(self, path: str = PROC_NETFILTER_QUEUE_PATH):
        self.path = path
        self._lock = ReadWriteLock()
        self._queues: Dict[int, QueueStats] = {}

    def refresh(self) -> None:
        """
        重新读取统计文件

        异常:
            OSError: 文件无法打开（通常表示当前没有活动队列）
            AccountingParseError: 存在格式错误的记录
        """
        with self._lock.write():
            queues: Dict[int, QueueStats] = {}
            with open(self.path, "r") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        stats = QueueStats.parse(line)
                    except AccountingParseError as e:
                        raise AccountingParseError(f"{self.path}:{line_no}: {e}") from None
                    queues[stats.id] = stats

            evicted = set(self._queues) - set(queues)
            if evicted:
                logger.debug(f"队列已不再活动: {sorted(evicted)}")
            self._queues = queues

    def get(self, queue_id: int) -> Optional[QueueStats]:
        """返回指定队列的统计，不存在时返回 None"""
        with self._lock.read():
            return self._queues.get(queue_id)

    def ids(self) -> List[int]:
        """当前快照中的队列号"""
        with self._lock.read():
            return sorted(self._queues)

    def __contains__(self, queue_id: int) -> bool:
        return self.get(queue_id) is not None

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._queues)


def read_proc_netfilter(path: str = PROC_NETFILTER_QUEUE_PATH) -> ProcNetfilter:
    """创建统计快照并完成首次读取，读取失败时抛出异常"""
    proc = ProcNetfilter(path)
    proc.refresh()
    return proc
