# -*- coding: utf-8 -*-
"""
数据 I/O
========

- records_io: 定宽结果表、带时间戳的结果文件、HDF5 导出
"""


# ising_sweep/data/__init__.py
from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["records_io"]

_lazy = {
    "records_io": ".records_io",
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
    from . import records_io
