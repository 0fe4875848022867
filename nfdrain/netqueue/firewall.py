"""
iptables 重定向规则管理

为每个配置的IPv4地址在 INPUT 链上安装一条规则，把发往该地址的 TCP SYN
包送入指定编号的 NFQUEUE；释放时删除同样的规则。

多地址安装不是事务性的：中途失败时，前面的地址已被重定向而后面的没有。
"""
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Sequence

from nfdrain.utils.helpers import IPAddress, is_ipv4
from nfdrain.utils.logger import get_logger

logger = get_logger("netqueue.firewall")

IPTABLES_ADD = "-A"
IPTABLES_DELETE = "-D"
INPUT_CHAIN = "INPUT"


class FirewallError(RuntimeError):
    """iptables 命令执行失败"""

    def __init__(self, command: Sequence[str], message: str):
        self.command = list(command)
        self.message = message
        super().__init__(f"iptables 执行失败 ({' '.join(self.command)}): {message}")


@dataclass(frozen=True)
class RedirectRule:
    """一条把新建TCP连接重定向到 NFQUEUE 的规则"""
    address: IPAddress
    queue_num: int

    def to_iptables_args(self, flag: str) -> List[str]:
        """生成 iptables 参数（不含可执行文件路径）"""
        return [
            flag,
            INPUT_CHAIN, "-j", "NFQUEUE", "-w",
            "-p", "tcp", "--syn", "--destination", str(self.address),
            "--queue-num", str(self.queue_num),
        ]

    def __str__(self) -> str:
        return f"tcp syn -> {self.address} => NFQUEUE {self.queue_num}"


class FirewallRuleManager:
    """负责安装和删除一组地址的重定向规则"""

    def __init__(
        self,
        addresses: Sequence[IPAddress],
        queue_num: int,
        iptables_path: str = "iptables",
        retries: int = 0,
        retry_delay: float = 0.5,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run
    ):
        self.addresses = tuple(addresses)
        self.queue_num = queue_num
        self.iptables_path = iptables_path
        self.retries = max(0, int(retries))
        self.retry_delay = retry_delay
        self._runner = runner
        self.rules = self._build_rules()

    def _build_rules(self) -> List[RedirectRule]:
        """可安装的规则（IPv6地址被跳过）"""
        rules = []
        for address in self.addresses:
            if not is_ipv4(address):
                logger.warning(f"仅支持IPv4地址，已跳过: {address}")
                continue
            rules.append(RedirectRule(address, self.queue_num))
        return rules

    def install(self) -> None:
        """安装所有重定向规则"""
        for rule in self.rules:
            self._run(rule.to_iptables_args(IPTABLES_ADD))
            logger.debug(f"已安装规则: {rule}")

    def remove(self) -> None:
        """删除 install() 安装的规则"""
        for rule in self.rules:
            self._run(rule.to_iptables_args(IPTABLES_DELETE))
            logger.debug(f"已删除规则: {rule}")

    @contextmanager
    def redirected(self) -> Iterator[None]:
        """安装规则，退出作用域时无论是否出错都删除规则"""
        self.install()
        try:
            yield
        finally:
            self.remove()

    def _run(self, args: List[str]) -> None:
        command = [self.iptables_path] + args
        attempt = 0
        while True:
            try:
                self._runner(command, check=True, capture_output=True, text=True)
                return
            except subprocess.CalledProcessError as e:
                error = FirewallError(command, (e.stderr or "").strip() or f"退出码 {e.returncode}")
            except OSError as e:
                error = FirewallError(command, str(e))

            if attempt >= self.retries:
                raise error
            attempt += 1
            logger.warning(f"{error}，{self.retry_delay}秒后重试 ({attempt}/{self.retries})")
            time.sleep(self.retry_delay)
