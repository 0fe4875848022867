"""
系统协调模块，负责管理和协调所有组件的运行

提供统一的启动、停止和状态查询接口。SystemManager 依赖各业务组件，
需从 nfdrain.system.system_manager 导入。
"""

from .base_component import BaseComponent

__all__ = ["BaseComponent"]
