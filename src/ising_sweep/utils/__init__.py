# -*- coding: utf-8 -*-
"""
工具层
======

提供日志配置与全局配置管理。

子模块
------
- logger: 日志工具
- config: 扫描配置（预设 / 文件 / 环境变量 / --set）

示例
----
>>> from ising_sweep.utils import config, logger
>>> log = logger.setup_logger("ising_sweep")
>>> cfg = config.get_preset_config("quick")
"""


# ising_sweep/utils/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["logger", "config"]

_lazy = {
    "logger": ".logger",
    "config": ".config",
}

def __getattr__(name: str):
    if name in _lazy:
        mod = import_module(_lazy[name], __name__)
        globals()[name] = mod
        return mod
    raise AttributeError(f"{__name__} has no attribute {name!r}")

def __dir__():
    return sorted(list(__all__))

if TYPE_CHECKING:
    from . import logger, config
