# -*- coding: utf-8 -*-
"""
绘图封装（温度扫描结果）

实现功能：
    - 一张图三个子图：比热型涨落 dE、序参量 I、磁化率型涨落 X 随温度 T 的变化
    - 可选标注二维 Ising 精确临界温度 T_c = 2 / ln(1 + √2)（J = K = 1 时）
    - 支持多格式保存（png/pdf/svg）
"""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt

from ..core.observables import Record

__all__ = ["plot_observables_vs_T", "save_figure", "ONSAGER_TC"]

ONSAGER_TC = 2.0 / math.log(1.0 + math.sqrt(2.0))

_PANELS = (
    ("dE", "比热型涨落 $dE$", "tab:red"),
    ("I", "序参量 $I = |\\langle s \\rangle|$", "tab:blue"),
    ("X", "磁化率型涨落 $X$", "tab:green"),
)


# -----------------------------------------------------------------------------
# 保存工具
# -----------------------------------------------------------------------------
def save_figure(
    fig: Optional[plt.Figure] = None,
    path: str | os.PathLike | None = None,
    *,
    dpi: int = 300,
    transparent: bool = False,
    pad_inches: float = 0.02,
    tight: bool = True,
    create_dir: bool = True,
    formats: Optional[List[str] | Tuple[str, ...]] = None,
) -> str | List[str]:
    """
    通用图片保存助手。
    若 path 包含后缀，则只按该后缀保存；否则按 formats 保存多个文件（默认 png）。
    """
    if path is None:
        raise ValueError("save_figure: 需要提供保存路径 path。")

    fig = fig if fig is not None else plt.gcf()
    path = Path(path)

    if create_dir:
        path.parent.mkdir(parents=True, exist_ok=True)

    if formats is None:
        if path.suffix:
            formats = [path.suffix.lstrip(".").lower()]
            stem = path.with_suffix("")
        else:
            formats = ["png"]
            stem = path
    else:
        formats = [f.lstrip(".").lower() for f in formats]
        stem = path.with_suffix("")

    if tight:
        fig.tight_layout()

    saved: List[str] = []
    for ext in formats:
        out_path = stem.with_suffix("." + ext)
        fig.savefig(
            out_path,
            dpi=dpi,
            transparent=transparent,
            bbox_inches="tight" if tight else None,
            pad_inches=pad_inches,
            facecolor=fig.get_facecolor(),
            edgecolor="none",
        )
        saved.append(str(out_path))

    return saved[0] if len(saved) == 1 else saved


def _maybe_save(fig: plt.Figure, save_path, dpi: int = 300, logger: Optional[logging.Logger] = None):
    if not save_path:
        return None
    saved = save_figure(fig=fig, path=save_path, dpi=dpi)
    if logger is not None:
        logger.info(f"图像已保存: {saved}")
    return saved


# -----------------------------------------------------------------------------
# 主图
# -----------------------------------------------------------------------------
def plot_observables_vs_T(
    records: Sequence[Record],
    save_path: Optional[str | os.PathLike] = None,
    *,
    mark_tc: Optional[float] = ONSAGER_TC,
    title: Optional[str] = None,
    figsize: Tuple[float, float] = (7.0, 9.0),
    dpi: int = 300,
    logger: Optional[logging.Logger] = None,
) -> plt.Figure:
    """
    绘制 dE / I / X 随 T 变化的三联图。

    参数：
      - records: 按 T 排序的 Record 序列（不要求严格排序，绘图前会按 T 排序）
      - save_path: 保存路径；None 时只返回 Figure
      - mark_tc: 竖线标注的临界温度；None 则不标注
    """
    if len(records) == 0:
        raise ValueError("plot_observables_vs_T: records 为空")

    T_arr = np.asarray([r.T for r in records], dtype=float)
    order = np.argsort(T_arr, kind="stable")
    T_arr = T_arr[order]

    fig, axes = plt.subplots(len(_PANELS), 1, figsize=figsize, sharex=True)
    for ax, (key, label, color) in zip(axes, _PANELS):
        y = np.asarray([getattr(r, key) for r in records], dtype=float)[order]
        ax.plot(T_arr, y, "o-", color=color, markersize=4, linewidth=1.5)
        ax.set_ylabel(label, fontsize=12)
        ax.grid(alpha=0.3, linestyle=":")
        if mark_tc is not None and T_arr[0] <= mark_tc <= T_arr[-1]:
            ax.axvline(mark_tc, color="gray", linestyle="--", alpha=0.6, linewidth=1.2)
    axes[-1].set_xlabel("温度 $T$", fontsize=12)
    axes[0].set_title(title or f"温度扫描结果（{len(records)} 个温度点）", fontsize=13)

    _maybe_save(fig, save_path, dpi=dpi, logger=logger)
    return fig
