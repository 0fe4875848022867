"""命令行接口模块"""
from nfdrain.cli.main import app

main = app

__all__ = ["app", "main"]
