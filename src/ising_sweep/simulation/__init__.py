# -*- coding: utf-8 -*-
"""
模拟层
======

- sweep: 温度扫描驱动器（spawn 进程池 / 串行）
- progress: 多生产者 / 单消费者进度汇聚
- runner: 命令行入口 ising-sweep
"""


# ising_sweep/simulation/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["sweep", "progress", "runner"]

_lazy = {
    "sweep": ".sweep",
    "progress": ".progress",
    "runner": ".runner",
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
    from . import sweep, progress, runner
