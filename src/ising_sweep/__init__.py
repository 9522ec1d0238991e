# -*- coding: utf-8 -*-
"""
Ising Temperature Sweep
=======================

二维周期 Ising 晶格的并行 Metropolis 温度扫描。

主要功能
--------
- 有界重试翻转槽（每槽最多 attempts_per_flip 次提议，首次接受即结束）
- 每个温度一个独立 worker（spawn 进程池），结果按 T 升序汇总
- 多生产者 / 单消费者进度汇聚（tqdm 进度条或日志）
- 定宽结果表 + 可选 HDF5 导出与绘图

快速开始
--------
>>> from ising_sweep.utils.config import get_preset_config
>>> from ising_sweep.simulation.sweep import TemperatureSweep
>>> cfg = get_preset_config("quick")
>>> records = TemperatureSweep(cfg.simulation).run()
>>> print(records[0].T, records[0].I)

模块组织
--------
- core: 晶格、接受判据、热化/测量状态机、观测量归约
- simulation: 温度扫描驱动、进度汇聚、命令行入口
- data: 结果表与 HDF5 读写
- visualization: 绘图
- utils: 日志与配置工具
"""

# ising_sweep/__init__.py
from importlib import import_module
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from typing import TYPE_CHECKING

try:
    __version__ = _pkg_version("ising-sweep")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "core",
    "simulation",
    "data",
    "visualization",
    "utils",
    "__version__",
]

_lazy_subpackages = {
    "core": ".core",
    "simulation": ".simulation",
    "data": ".data",
    "visualization": ".visualization",
    "utils": ".utils",
}


def __getattr__(name: str):
    if name in _lazy_subpackages:
        mod = import_module(_lazy_subpackages[name], __name__)
        globals()[name] = mod
        return mod
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(list(__all__))


if TYPE_CHECKING:
    from . import core, simulation, data, visualization, utils
