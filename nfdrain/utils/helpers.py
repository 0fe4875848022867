import ipaddress
import socket
from typing import Iterable, List, Tuple, Union

import dpkt

from .logger import get_logger

logger = get_logger("utils.helpers")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def parse_address_list(value: Union[str, Iterable[str], None]) -> Tuple[IPAddress, ...]:
    """
    解析地址列表

    参数:
        value: 逗号分隔的地址字符串（如 "10.0.0.1,10.0.0.2"），或地址字符串的序列

    返回:
        保持原始顺序、去重后的地址元组

    异常:
        ValueError: 存在无法解析的地址
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items: List[str] = value.split(",") if value.strip() else []
    else:
        items = [str(item) for item in value]

    addresses: List[IPAddress] = []
    for item in items:
        item = item.strip()
        try:
            address = ipaddress.ip_address(item)
        except ValueError:
            raise ValueError(f"无效的IP地址: {item!r}") from None
        if address not in addresses:
            addresses.append(address)
    return tuple(addresses)


def is_ipv4(address: IPAddress) -> bool:
    """检查地址是否为IPv4"""
    return address.version == 4


def describe_packet(payload: bytes) -> str:
    """
    生成数据包的简短描述，用于调试日志

    返回:
        TCP包为 "src:sport -> dst:dport"，其它IPv4包为 "src -> dst proto=N"
    """
    try:
        ip = dpkt.ip.IP(payload)
    except (dpkt.UnpackError, ValueError) as e:
        logger.debug(f"无法解析数据包: {e}")
        return f"<{len(payload)} bytes>"

    src = socket.inet_ntoa(ip.src)
    dst = socket.inet_ntoa(ip.dst)
    if isinstance(ip.data, dpkt.tcp.TCP):
        return f"{src}:{ip.data.sport} -> {dst}:{ip.data.dport}"
    return f"{src} -> {dst} proto={ip.p}"
