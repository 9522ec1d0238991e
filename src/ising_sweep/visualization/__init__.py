# -*- coding: utf-8 -*-
"""
可视化
======

- plots: dE / I / X 随温度变化的三联图
"""


# ising_sweep/visualization/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["plots"]

_lazy = {
    "plots": ".plots",
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
    from . import plots
