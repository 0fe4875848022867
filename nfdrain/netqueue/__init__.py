"""
连接截留模块：iptables 重定向规则、NFQUEUE 数据包截留和截留会话控制
"""
from nfdrain.netqueue.firewall import FirewallError, FirewallRuleManager, RedirectRule
from nfdrain.netqueue.interceptor import NetfilterQueueSource, PacketInterceptor
from nfdrain.netqueue.session import DrainSession, NetQueue, SessionState, abort_process

__all__ = [
    "FirewallError",
    "FirewallRuleManager",
    "RedirectRule",
    "NetfilterQueueSource",
    "PacketInterceptor",
    "DrainSession",
    "NetQueue",
    "SessionState",
    "abort_process"
]
