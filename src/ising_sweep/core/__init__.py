# -*- coding: utf-8 -*-
"""
核心模块
========

子模块
------
- lattice: 周期边界 L×L 自旋晶格
- acceptance: Metropolis 接受概率
- cycle: 单温度 热化 → 测量 状态机
- observables: 样本 → Record（dE / I / X）

示例
----
>>> import numpy as np
>>> from ising_sweep.core.lattice import Lattice
>>> lat = Lattice(16, np.random.default_rng(0))
>>> lat.energy_per_site(1.0), lat.order_parameter()
"""


# ising_sweep/core/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["lattice", "acceptance", "cycle", "observables"]

_lazy = {
    "lattice": ".lattice",
    "acceptance": ".acceptance",
    "cycle": ".cycle",
    "observables": ".observables",
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
    from . import lattice, acceptance, cycle, observables
